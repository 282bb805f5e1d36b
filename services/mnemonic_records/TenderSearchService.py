import re

from services.mnemonic_records.MnemonicRecordService import ActivatableRecordService, parse_payload
from shared.exceptions.ServiceErrors import InputValidationError
from shared.helper.HelperMnemonic import build_base_mnemonic, fixed_width_code, generate_unique_mnemonic
from shared.models.tender_search import TenderSearch, TenderSearchCreate

SENIORITY_CODES = {
    "intern": "INT",
    "trainee": "INT",
    "junior": "JUN",
    "medior": "MED",
    "intermediate": "MED",
    "mid": "MED",
    "proficient": "PRO",
    "professional": "PRO",
    "senior": "SEN",
    "lead": "LEA",
    "principal": "PRI",
    "staff": "STF",
    "manager": "MGR",
    "director": "DIR",
    "executive": "EXE",
    "head": "HED",
    "associate": "ASC",
    "consultant": "CON",
}

# checked in order, first hit wins
SENIORITY_PATTERNS = [
    (r"intern|trainee", "INT"),
    (r"jun", "JUN"),
    (r"med|intermediate|mid", "MED"),
    (r"profici|profes", "PRO"),
    (r"sen", "SEN"),
    (r"lead", "LEA"),
    (r"princi|staff", "PRI"),
    (r"manag", "MGR"),
    (r"director", "DIR"),
    (r"exec", "EXE"),
]

PROFILE_CODES = {
    "backend developer": "BACK",
    "backend": "BACK",
    "backend engineer": "BACK",
    "frontend developer": "FRON",
    "frontend": "FRON",
    "frontend engineer": "FRON",
    "full stack developer": "FULL",
    "fullstack developer": "FULL",
    "mobile developer": "MOBI",
    "devops": "DVOP",
    "devops engineer": "DVOP",
    "data analyst": "DATA",
    "data scientist": "DSCI",
    "machine learning engineer": "MLEN",
    "ml engineer": "MLEN",
    "ai specialist": "AISP",
    "ai engineer": "AISP",
    "ux designer": "UXDE",
    "ux/ui designer": "UXDE",
    "ui designer": "UIDE",
    "graphic designer": "GRDE",
    "copywriter": "COPY",
    "content strategist": "CONT",
    "product manager": "PRDM",
    "project manager": "PROJ",
    "program manager": "PROG",
    "qa engineer": "QENG",
    "tester": "TEST",
    "software architect": "ARCH",
    "architect": "ARCH",
    "solution architect": "SOLU",
    "security analyst": "SECU",
    "system administrator": "SYAD",
    "systems administrator": "SYAD",
    "digital marketer": "DMAR",
    "communications officer": "COMM",
    "communications manager": "COMM",
    "operations manager": "OPER",
    "general manager": "GENM",
    "webmaster": "WEBM",
    "digital technical expert": "DIGT",
    "portfolio manager": "PORT",
}

PROFILE_PATTERNS = [
    (r"back", "BACK"),
    (r"front", "FRON"),
    (r"full.?stack", "FULL"),
    (r"devops", "DVOP"),
    (r"data scientist", "DSCI"),
    (r"data", "DATA"),
    (r"(ml|machine learning)", "MLEN"),
    (r"\bai\b", "AISP"),
    (r"\bux\b", "UXDE"),
    (r"\bui\b", "UIDE"),
    (r"graphic", "GRDE"),
    (r"copy", "COPY"),
    (r"content", "CONT"),
    (r"product manager", "PRDM"),
    (r"project manager", "PROJ"),
    (r"program manager", "PROG"),
    (r"\bqa\b|quality", "QENG"),
    (r"test", "TEST"),
    (r"architect", "ARCH"),
    (r"solution", "SOLU"),
    (r"security", "SECU"),
    (r"system", "SYAD"),
    (r"digital.*market", "DMAR"),
    (r"communi", "COMM"),
    (r"oper", "OPER"),
    (r"general manag", "GENM"),
    (r"mobile", "MOBI"),
    (r"webmaster", "WEBM"),
    (r"digital.*technical.*expert", "DIGT"),
    (r"portfolio.*manager", "PORT"),
]


def _lookup_code(value: str | None, table: dict[str, str], patterns: list[tuple[str, str]], width: int) -> str:
    text = (value or "").strip().lower()
    if text in table:
        return table[text]
    for pattern, code in patterns:
        if re.search(pattern, text):
            return code
    return fixed_width_code(value, width, letters_only=True)


def seniority_code(seniority: str | None) -> str:
    """Senior -> ``SEN``. Unknown values use their first three letters, padded with X."""
    return _lookup_code(seniority, SENIORITY_CODES, SENIORITY_PATTERNS, 3)


def profile_code(title: str | None) -> str:
    """Backend Developer -> ``BACK``. Unknown titles use their first four letters, padded with X."""
    return _lookup_code(title, PROFILE_CODES, PROFILE_PATTERNS, 4)


class TenderSearchService(ActivatableRecordService[TenderSearch]):
    """Saved tender searches (seniority + profiles + requested services) per owner.

    Mnemonics look like ``SEN_BACK``: seniority code, then the code of the
    first profile's title.
    """

    collection = "tender_searches"
    record_model = TenderSearch

    async def create(self, owner: str, payload: TenderSearchCreate | dict) -> TenderSearch:
        """
        Raises:
            InputValidationError: If seniority or requested_services is missing, or no profile has a title.
        """
        data = parse_payload(TenderSearchCreate, payload)
        profiles = data.normalized_profiles()
        if not profiles:
            raise InputValidationError("At least one profile with a title is required.")
        base = build_base_mnemonic([seniority_code(data.seniority), profile_code(profiles[0].title)])

        return await self._insert_unique(
            owner,
            lambda taken: TenderSearch(
                mnemonic=generate_unique_mnemonic(base, taken),
                owner=owner,
                tender_id=data.tender_id,
                seniority=data.seniority,
                profiles=profiles,
                requested_services=data.requested_services,
            ),
        )
