"""服务层：生命周期编排、打包、构建、服务容器"""
