"""配置层：应用级 Settings 与远端调用的 ChatConfig。"""
