from whirkplace.extensions import db
from datetime import datetime
import uuid


class Organization(db.Model):
    __tablename__ = 'organizations'

    """
    Organization Model - One tenant (customer account) of the SaaS.

    Every tenant-scoped read or write happens against exactly one organization.
    The slug is used for subdomain routing (acme.whirkplace.com) and must be
    unique among active organizations.

    Attributes:
        id (str): Unique identifier (UUID, or a fixed id for the default org)
        name (str): Display name
        slug (str): Subdomain-routable identifier
        plan (str): 'starter', 'professional', 'enterprise'
        is_active (bool): Deactivated tenants cannot be resolved or used
        enable_local_auth (bool): Password login allowed
        enable_slack_auth (bool): Slack sign-in allowed
        enable_microsoft_auth (bool): Microsoft sign-in allowed
        partner_firm_id (str): Partner firm managing this tenant (nullable)
        onboarding_status (str): 'pending', 'in_progress', 'completed'
    """

    id = db.Column(db.String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(100), nullable=False, index=True)
    plan = db.Column(db.String(50), nullable=False, default='starter')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    enable_local_auth = db.Column(db.Boolean, nullable=False, default=True)
    enable_slack_auth = db.Column(db.Boolean, nullable=False, default=False)
    enable_microsoft_auth = db.Column(db.Boolean, nullable=False, default=False)
    slack_workspace_id = db.Column(db.String(64), nullable=True)
    microsoft_tenant_id = db.Column(db.String(64), nullable=True)
    partner_firm_id = db.Column(db.String(36), db.ForeignKey('partner_firms.id'), nullable=True)
    onboarding_status = db.Column(db.String(32), nullable=False, default='pending')
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    users = db.relationship('User', backref='organization', lazy='dynamic')

    def provider_enabled(self, provider):
        return {
            'local': self.enable_local_auth,
            'slack': self.enable_slack_auth,
            'microsoft': self.enable_microsoft_auth,
        }.get(provider, False)

    def __repr__(self):
        return f'<Organization {self.slug} active={self.is_active}>'


class PartnerFirm(db.Model):
    __tablename__ = 'partner_firms'

    """Partner firm (reseller/accountancy) that manages several organizations."""

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    organizations = db.relationship('Organization', backref='partner_firm', lazy='dynamic')
