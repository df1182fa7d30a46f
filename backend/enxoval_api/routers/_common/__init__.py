"""
Dependencies shared by public and admin routers.
"""
