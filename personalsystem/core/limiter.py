from slowapi import Limiter

from personalsystem.features.users.dependencies import get_authorization_header

# Keyed on the caller's session, falling back to the client address
limiter = Limiter(key_func=get_authorization_header)
