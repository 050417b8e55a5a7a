"""Command-line interface for the campaign phase coordinator"""
