from whirkplace.models.organization import Organization, PartnerFirm
from whirkplace.models.user import User
from whirkplace.models.team import Team

__all__ = ['Organization', 'PartnerFirm', 'User', 'Team']
