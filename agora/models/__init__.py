from agora.models.user import User
from agora.models.community import Community
from agora.models.member import Member, MemberRole, MemberStatus

__all__ = ["User", "Community", "Member", "MemberRole", "MemberStatus"]
