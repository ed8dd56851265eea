from marshmallow import Schema, fields, validate, EXCLUDE


class LoginSchema(Schema):
    """
    Password Login Request Validation Schema

    organization_slug is optional: without it the first active membership
    whose password matches is used.

    Example:
        schema = LoginSchema()
        result = schema.load(request_data)
    """
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True, error_messages={
        "required": "Email is required",
        "invalid": "Invalid email format"
    })

    password = fields.Str(required=True, load_only=True, error_messages={
        "required": "Password is required"
    })

    organization_slug = fields.Str(load_default=None)


class SwitchOrganizationSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    organizationId = fields.Str(required=True, validate=validate.Length(min=1), error_messages={
        "required": "Organization ID is required"
    })


class BackdoorTestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    username = fields.Str(required=True, validate=validate.Length(min=1))
    key = fields.Str(required=True, load_only=True, validate=validate.Length(min=1))


class UserResponseSchema(Schema):
    """
    User Response Schema

    Defines what user data is returned to the frontend.
    Never returns password_hash or provider tokens.
    """
    id = fields.Str()
    email = fields.Email()
    username = fields.Str()
    name = fields.Str()
    role = fields.Str()
    isSuperAdmin = fields.Bool(attribute='is_super_admin')
    isActive = fields.Bool(attribute='is_active')
    organizationId = fields.Str(attribute='organization_id')
    teamId = fields.Str(attribute='team_id', allow_none=True)
    authProvider = fields.Str(attribute='auth_provider')
    slackUserId = fields.Str(attribute='slack_user_id', allow_none=True)
    microsoftUserId = fields.Str(attribute='microsoft_user_id', allow_none=True)
    createdAt = fields.DateTime(attribute='created_at')


class OrganizationResponseSchema(Schema):
    """Organization fields safe to show to members of that organization."""
    id = fields.Str()
    name = fields.Str()
    slug = fields.Str()
    plan = fields.Str()
    isActive = fields.Bool(attribute='is_active')
    enableLocalAuth = fields.Bool(attribute='enable_local_auth')
    enableSlackAuth = fields.Bool(attribute='enable_slack_auth')
    enableMicrosoftAuth = fields.Bool(attribute='enable_microsoft_auth')
    onboardingStatus = fields.Str(attribute='onboarding_status')


user_schema = UserResponseSchema()
organization_schema = OrganizationResponseSchema()


def sanitize_user(user):
    """Client-safe representation of an identity (None passes through)."""
    if user is None:
        return None
    return user_schema.dump(user)


def sanitize_users(users):
    return [sanitize_user(user) for user in users or []]
