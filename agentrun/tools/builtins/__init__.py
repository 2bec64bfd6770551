"""
Built-in tools shipped with agentrun.
"""

from agentrun.tools.builtins.bash_executor import BashExecutorTool
from agentrun.tools.builtins.file_tools import FileReaderTool, FileWriterTool

__all__ = ["BashExecutorTool", "FileReaderTool", "FileWriterTool"]
