"""Security tests for the reply relay"""
