"""
Events module.

Admin-authored announcements. End users only ever see rows with is_active set;
the admin list shows everything.
"""
