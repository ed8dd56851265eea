"""Request and database helpers shared by the test modules."""
from whirkplace.extensions import db

DEFAULT_PASSWORD = 'CorrectHorse9!'


def login(client, email, password=DEFAULT_PASSWORD, organization_slug=None, **kwargs):
    body = {'email': email, 'password': password}
    if organization_slug:
        body['organization_slug'] = organization_slug
    return client.post('/api/auth/login', json=body, **kwargs)


def reload(model, pk):
    """Fresh copy of a row, bypassing anything cached in the session."""
    db.session.expire_all()
    return db.session.get(model, pk)


def session_cookie(response):
    """The Set-Cookie header of the session cookie, or None."""
    for header in response.headers.getlist('Set-Cookie'):
        if header.startswith('whirkplace.sid='):
            return header
    return None
