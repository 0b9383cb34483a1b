"""
执行器模块

BaseExecutor 定义单次尝试的模板方法；PlaywrightExecutor 是默认实现。
"""
from .base import BaseExecutor

__all__ = ["BaseExecutor"]
