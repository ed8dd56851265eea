from whirkplace.extensions import db
from datetime import datetime
import uuid


class Team(db.Model):
    __tablename__ = 'teams'

    """
    Team Model - Only the columns authorization needs.

    leader_id marks the team leader; leaders pass the team-lead check even
    when their role is 'member'.
    """

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = db.Column(db.String(64), db.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    leader_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
