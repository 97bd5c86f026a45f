"""键值持久化与会话存储。"""
