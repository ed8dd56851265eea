HSTS_VALUE = 'max-age=31536000; includeSubDomains'


def init_security_headers(app, security_config):
    """Security headers on every response; HSTS only in production."""

    @app.after_request
    def set_security_headers(response):
        if security_config.is_production:
            response.headers.setdefault('Strict-Transport-Security', HSTS_VALUE)
        response.headers.setdefault('Content-Security-Policy', "frame-ancestors 'self'")
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
        return response
