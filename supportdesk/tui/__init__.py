"""
Terminal front end for the support chat.
"""
