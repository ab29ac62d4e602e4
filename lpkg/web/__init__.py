"""只读 Web 看板与静态仓库服务"""
