"""
CarbonChain - CLI Package
==========================
Command line interface (typer).
"""
