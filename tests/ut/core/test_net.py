"""URL 校验单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from lpkg.core.exceptions import ValidationError
from lpkg.utils.net import file_url_path, validate_url_scheme


class TestValidateUrlScheme:
    @pytest.mark.parametrize("url", [
        "https://example.org/index.json",
        "http://localhost:8888/repo/index.json",
        "file:///srv/lpkg/index.json",
    ])
    def test_allowed(self, url: str) -> None:
        validate_url_scheme(url)

    def test_rejected_with_context(self) -> None:
        with pytest.raises(ValidationError, match="仓库"):
            validate_url_scheme("ftp://example.org/x", context="仓库")

    def test_file_url_path(self) -> None:
        assert file_url_path("file:///srv/lpkg/index.json") == "/srv/lpkg/index.json"

    def test_file_url_path_decodes_escapes(self, tmp_path: Path) -> None:
        target = tmp_path / "my repo" / "index.json"
        assert "%20" in target.as_uri()
        assert file_url_path(target.as_uri()) == str(target)
