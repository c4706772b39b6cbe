"""
Document question answering over uploaded files with branching conversations.
"""
