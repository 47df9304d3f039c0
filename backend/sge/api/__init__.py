"""
api — HTTP routers. Thin: validate input, call services, shape responses.
"""
