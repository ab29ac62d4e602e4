"""lpkg 核心层：归档、摘要、元数据、依赖、签名、存储"""
