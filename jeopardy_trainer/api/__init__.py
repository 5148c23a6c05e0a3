"""
HTTP API for Jeopardy Trainer
"""
