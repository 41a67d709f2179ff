"""
FILE: weekplan/core/__init__.py
PURPOSE: Task persistence and ordering engine
"""
