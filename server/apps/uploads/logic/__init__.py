"""Business logic for uploads app.

One module per pipeline stage; ``upload_creator`` sequences them.
"""
