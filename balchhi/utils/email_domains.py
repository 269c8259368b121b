from pydantic import BaseModel


# Free webmail providers. An organization cannot verify with these.
BLOCKED_EMAIL_DOMAINS = {
    "gmail.com",
    "googlemail.com",
    "yahoo.com",
    "ymail.com",
    "hotmail.com",
    "outlook.com",
    "live.com",
    "msn.com",
    "icloud.com",
    "aol.com",
    "protonmail.com",
    "proton.me",
    "mail.com",
    "gmx.com",
    "yandex.com",
    "zoho.com",
    "rediffmail.com",
}

# Institutional domains and their trust level. Subdomains inherit the level.
TRUSTED_EMAIL_DOMAINS = {
    "gov.np": 3,
    "nepalpolice.gov.np": 3,
    "mil.np": 3,
    "edu.np": 2,
    "org.np": 1,
}


class EmailDomainCheck(BaseModel):
    email: str
    domain: str
    valid: bool
    is_blocked: bool
    is_approved: bool
    trust_level: int
    requires_manual_override: bool
    message: str


def extract_email_domain(email: str) -> str:
    if "@" not in email:
        return ""

    return email.rsplit("@", 1)[1].strip().lower()


def trusted_domain_level(domain: str) -> int:
    if domain in TRUSTED_EMAIL_DOMAINS:
        return TRUSTED_EMAIL_DOMAINS[domain]

    for trusted, level in TRUSTED_EMAIL_DOMAINS.items():
        if domain.endswith("." + trusted):
            return level

    return 0


def check_email_domain(email: str) -> EmailDomainCheck:
    """Classify an organization email by its domain.

    Trusted domains are informational: they raise the trust level shown to
    reviewers but never skip human review.
    """
    email = (email or "").strip()
    domain = extract_email_domain(email)

    if not domain or email.startswith("@"):
        return EmailDomainCheck(
            email=email,
            domain=domain,
            valid=False,
            is_blocked=False,
            is_approved=False,
            trust_level=0,
            requires_manual_override=False,
            message="Official email must be a valid email address.",
        )

    if domain in BLOCKED_EMAIL_DOMAINS:
        return EmailDomainCheck(
            email=email,
            domain=domain,
            valid=False,
            is_blocked=True,
            is_approved=False,
            trust_level=0,
            requires_manual_override=True,
            message=(
                "Generic email providers (Gmail, Yahoo, etc.) are not allowed. "
                "Please use your official organization email."
            ),
        )

    level = trusted_domain_level(domain)
    if level:
        return EmailDomainCheck(
            email=email,
            domain=domain,
            valid=True,
            is_blocked=False,
            is_approved=True,
            trust_level=level,
            requires_manual_override=False,
            message="Email domain is pre-approved as an official organization domain.",
        )

    return EmailDomainCheck(
        email=email,
        domain=domain,
        valid=True,
        is_blocked=False,
        is_approved=False,
        trust_level=1,
        requires_manual_override=False,
        message="Email domain accepted. Email verification will be required.",
    )
