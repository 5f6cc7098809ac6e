"""
Permission management feature module.

Role-based access control: users hold roles, roles bundle named permissions,
``admin.full`` overrides every check. Also home to the audit trail and the
admin-editable system settings.
"""
