"""配置等通用工具"""
