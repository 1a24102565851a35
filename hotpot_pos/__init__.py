"""
鍋物外帶取餐时段与容量服务
"""

__version__ = "1.0.0"
