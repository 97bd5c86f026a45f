"""同步服务接口。"""
