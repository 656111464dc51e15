"""Command-line interfaces"""
