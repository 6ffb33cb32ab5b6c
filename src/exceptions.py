#!/usr/bin/env python3
"""
Exception Classes
"""

class Screenshot2PDFError(Exception):
    """Base exception for screenshot2pdf errors"""
    pass

class BrowserLaunchError(Screenshot2PDFError):
    """Raised when the browser session cannot be started at all"""
    pass

class PDFWriteError(Screenshot2PDFError):
    """Raised when the PDF document cannot be rendered or written"""
    pass
