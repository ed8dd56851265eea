from whirkplace.extensions import db
from datetime import datetime
import uuid

ROLE_MEMBER = 'member'
ROLE_MANAGER = 'manager'
ROLE_ADMIN = 'admin'
ROLE_PARTNER_ADMIN = 'partner_admin'


class User(db.Model):
    __tablename__ = 'users'

    """
    User Model - One identity inside one organization.

    The same person may belong to several organizations: that is modelled as
    one User row per organization, joined by email. Emails are stored
    lower-cased and indexed so the email -> memberships lookup used at login
    is a single indexed query.

    Attributes:
        id (str): Unique identifier (UUID)
        organization_id (str): Owning organization
        email (str): Lower-cased email, unique per organization
        username (str): Unique per organization
        password_hash (str): Werkzeug hash; NULL disables password login
        role (str): 'member', 'manager', 'admin', 'partner_admin'
        is_super_admin (bool): Bypasses every role check, cross-tenant
        is_active (bool): Inactive identities cannot authenticate
        team_id (str): Team assignment (managers need one for team-lead access)
        slack_user_id (str): Linked Slack identity
        microsoft_user_id (str): Linked Microsoft identity
        auth_provider (str): 'local', 'slack', 'microsoft'
    """

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = db.Column(db.String(64), db.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    username = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(32), nullable=False, default=ROLE_MEMBER)
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    team_id = db.Column(db.String(36), nullable=True)
    slack_user_id = db.Column(db.String(64), nullable=True, index=True)
    microsoft_user_id = db.Column(db.String(64), nullable=True, index=True)
    auth_provider = db.Column(db.String(32), nullable=False, default='local')
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'email', name='uq_users_org_email'),
        db.UniqueConstraint('organization_id', 'username', name='uq_users_org_username'),
    )

    def __repr__(self):
        return f'<User {self.id} {self.email} org={self.organization_id}>'
