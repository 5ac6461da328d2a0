import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from crewpay.models.crew_member import CrewMember
from crewpay.services.errors import translate_db_error


@dataclass(frozen=True)
class CrewProfile:
    crew_user_id: str
    display_name: str
    individual_commission_rate_percent: Decimal


def _to_profile(member: CrewMember) -> CrewProfile:
    return CrewProfile(
        crew_user_id=member.user_id,
        display_name=member.name,
        individual_commission_rate_percent=Decimal(str(member.commission_rate or 0)),
    )


class CrewDirectory:
    """Read-only access to the crew directory."""

    @staticmethod
    def get_crew_profile(crew_user_id) -> Optional[CrewProfile]:
        try:
            member = CrewMember.query.filter_by(user_id=str(crew_user_id)).first()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching crew profile {crew_user_id}: {e}", exc_info=True)
            raise translate_db_error(e, "fetch crew profile")
        return _to_profile(member) if member else None

    @staticmethod
    def list_crew_profiles() -> List[CrewProfile]:
        try:
            members = CrewMember.query.order_by(CrewMember.name).all()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching crew profiles: {e}", exc_info=True)
            raise translate_db_error(e, "fetch crew profiles")
        return [_to_profile(m) for m in members]

    @staticmethod
    def profiles_by_id() -> Dict[str, CrewProfile]:
        return {p.crew_user_id: p for p in CrewDirectory.list_crew_profiles()}
