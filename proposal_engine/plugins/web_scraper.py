"""
Website enrichment plugin (enrich stage, AI extraction).

Fetches the merchant website, strips it to text and asks the model router to
extract a business profile. Every failure here is soft: an unreachable site,
a non-2xx status, provider exhaustion or unparseable output each add a
warning and the stage continues.

Industry priority (only when the caller left it empty):
1. keyword match on the business name
2. category returned by the model
"""

import logging
import re
from typing import Any
from urllib.parse import urljoin, urlparse

import httpx

from proposal_engine.core.config import get_settings
from proposal_engine.core.llm import parse_llm_json_dict
from proposal_engine.core.logging import get_logger, log_with_context
from proposal_engine.core.model_router import AllProvidersFailedError, ModelRouter
from proposal_engine.core.plugin_manager import ProposalPlugin
from proposal_engine.core.schemas_context import (
    AuditEntry,
    LogoData,
    ProposalContext,
    ProposalStage,
)
from proposal_engine.core.schemas_models import ModelTask

logger = get_logger(__name__)

MAX_PAGE_CHARS = 5000

EXTRACTION_SYSTEM_PROMPT = "You are a business analyst. Extract factual information only. Return valid JSON."

EXTRACTION_PROMPT = """\
Analyze this business website content and extract key information:

Website: {website}
Title: {title}
Meta Description: {description}

Page Content (truncated):
{content}

Extract and return as JSON:
{{
  "businessDescription": "2-3 sentence description of what the business does. Must be actual content, not a placeholder.",
  "services": ["list", "of", "main", "services"],
  "brandLanguage": "professional/casual/luxury/budget-friendly",
  "socialProof": ["any testimonials or credentials mentioned"],
  "industryCategory": "auto_repair/restaurant/retail/salon/healthcare/construction/fitness/lodging/professional/other",
  "streetAddress": "street address only, no phone numbers",
  "city": "city name",
  "state": "state abbreviation",
  "zip": "zip code",
  "phone": "phone number in format (XXX) XXX-XXXX"
}}

IMPORTANT:
- For industryCategory, detect based on the actual business type. Auto shops, mechanics, brake/muffler shops = "auto_repair". Restaurants, cafes, food service = "restaurant".
- Keep address and phone SEPARATE - do not combine them.
- Only return factual information found on the page.
"""

# =============================================================================
# Industry detection
# =============================================================================

# Checked in order; auto comes first so "Bob's Brake & Muffler" never lands in restaurant
INDUSTRY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("auto_repair", (
        "auto", "car ", "cars", "brake", "muffler", "tire", "mechanic", "transmission",
        "collision", "body shop", "lube", "oil change", "automotive", "motor", "vehicle",
    )),
    ("restaurant", (
        "restaurant", "cafe", "diner", "bistro", "grill", "pizza", "burger", "taco", "sushi",
        "kitchen", "eatery", "bbq", "steakhouse", "bakery", "food",
    )),
    ("salon", ("salon", "spa", "hair", "nail", "beauty", "barber", "cuts")),
    ("healthcare", (
        "medical", "clinic", "dental", "doctor", "chiro", "therapy", "physician",
        "orthodont", "optometr", "veterinar", "pharmacy",
    )),
    ("construction", (
        "construction", "plumbing", "plumber", "electric", "hvac", "roofing", "contractor",
        "landscap", "building", "painting", "flooring",
    )),
    ("retail", ("store", "shop", "market", "boutique", "outlet")),
    ("fitness", ("gym", "fitness", "yoga", "crossfit", "training")),
    ("lodging", ("hotel", "motel", "inn", "lodge", "resort")),
]


def detect_industry_from_name(business_name: str) -> str | None:
    """Keyword-based industry from the business name, or None to let the model decide."""
    name = business_name.lower()

    for industry, keywords in INDUSTRY_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return industry
        # "repair" alone means auto unless it's clearly electronics
        if industry == "auto_repair" and "repair" in name and "computer" not in name and "phone" not in name:
            return industry

    return None


# =============================================================================
# Text helpers
# =============================================================================

PHONE_PATTERNS = [
    re.compile(r"\+1[-.\s]?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}"),
    re.compile(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}"),
]

PLACEHOLDER_MARKERS = ("{meta", "{description}", "meta description", "undefined")


def extract_phone_number(text: str) -> str | None:
    for pattern in PHONE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def clean_address(address: str) -> str:
    """Remove phone numbers and label noise from an address string."""
    cleaned = re.sub(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}", "", address)
    cleaned = re.sub(
        r"\b(?:Phone\s*Number:?|Phone:?|Tel:?|Call:?|Address:)\s*", "", cleaned, flags=re.IGNORECASE
    )
    cleaned = re.sub(r"\s+", " ", cleaned.strip())
    return re.sub(r"[,\s]+$", "", cleaned)


def scalar_text(value: Any) -> str | None:
    """Model output as text; numbers become strings, lists and objects are dropped."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def format_address(street: str | None, city: str | None, state: str | None, zip_code: str | None) -> str | None:
    """Format structured parts as "123 Main St, City, ST 12345"."""
    locality = ", ".join(p for p in (city, " ".join(p for p in (state, zip_code) if p)) if p)
    formatted = ", ".join(p for p in (street, locality) if p)
    return clean_address(formatted) if formatted else None


def is_valid_description(description: str | None) -> bool:
    """Reject empty, too-short and template-placeholder descriptions."""
    if not isinstance(description, str) or not description:
        return False
    lower = description.lower()
    if any(marker in lower for marker in PLACEHOLDER_MARKERS):
        return False
    return lower not in ("none", "n/a") and len(description) >= 10


def strip_html(html: str) -> str:
    text = re.sub(r"<script[^>]*>.*?</script>", "", html, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<style[^>]*>.*?</style>", "", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<[^>]+>", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def _meta_content(html: str, attr: str, value: str) -> str | None:
    match = re.search(
        rf"<meta[^>]*{attr}=[\"']{re.escape(value)}[\"'][^>]*content=[\"']([^\"']+)[\"']",
        html,
        re.IGNORECASE,
    )
    return match.group(1).strip() if match else None


def read_page_metadata(html: str) -> dict[str, str | None]:
    """Title, description and og:image from raw HTML."""
    title_match = re.search(r"<title[^>]*>([^<]+)</title>", html, re.IGNORECASE)
    return {
        "title": title_match.group(1).strip() if title_match else None,
        "description": _meta_content(html, "name", "description") or _meta_content(html, "property", "og:description"),
        "og_image": _meta_content(html, "property", "og:image"),
    }


LOGO_PATTERNS = [
    re.compile(r'<img[^>]*class="[^"]*logo[^"]*"[^>]*src="([^"]+)"', re.IGNORECASE),
    re.compile(r'<img[^>]*id="[^"]*logo[^"]*"[^>]*src="([^"]+)"', re.IGNORECASE),
    re.compile(r'<img[^>]*alt="[^"]*logo[^"]*"[^>]*src="([^"]+)"', re.IGNORECASE),
    re.compile(r'<img[^>]*src="([^"]+)"[^>]*class="[^"]*logo[^"]*"', re.IGNORECASE),
    re.compile(r'<img[^>]*src="([^"]+logo[^"]+)"', re.IGNORECASE),
    re.compile(r'<link[^>]*rel="icon"[^>]*href="([^"]+)"', re.IGNORECASE),
]


def find_logo(html: str, page_url: str, og_image: str | None) -> LogoData | None:
    """Best logo candidate as an absolute URL; og:image wins when present."""
    logo_url = og_image
    if not logo_url:
        for pattern in LOGO_PATTERNS:
            match = pattern.search(html)
            if match:
                logo_url = match.group(1)
                break

    if not logo_url:
        return None

    absolute = urljoin(page_url, logo_url)
    path = urlparse(absolute).path
    extension = path.rsplit(".", 1)[-1].lower() if "." in path.rsplit("/", 1)[-1] else "unknown"
    return LogoData(url=absolute, format=extension, confidence=0.6 if og_image else 0.4)


def normalize_url(website: str) -> str:
    website = website.strip()
    return website if website.lower().startswith("http") else f"https://{website}"


# =============================================================================
# Plugin
# =============================================================================


class WebScraperPlugin(ProposalPlugin):
    id = "web-scraper"
    name = "Website Scraper"
    version = "1.0.0"
    stage = ProposalStage.ENRICH
    enabled = True
    priority = 20

    def __init__(
        self,
        router: ModelRouter,
        timeout: float | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.router = router
        self.timeout = timeout if timeout is not None else settings.WEBSITE_FETCH_TIMEOUT
        self.user_agent = user_agent or settings.SCRAPER_USER_AGENT
        self._transport = transport

    async def fetch(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            return await client.get(url, headers={"User-Agent": self.user_agent})

    async def run(self, context: ProposalContext) -> ProposalContext:
        website = context.merchant_data.website
        if not website:
            logger.info("[WebScraper] No website provided, skipping enrichment")
            return context

        url = normalize_url(website)
        log_fields = {"proposal_id": context.id, "stage": self.stage, "plugin": self.id, "url": url}
        log_with_context(logger, logging.INFO, "Scraping website", **log_fields)

        try:
            response = await self.fetch(url)
        except httpx.TimeoutException:
            log_with_context(logger, logging.WARNING, "Website fetch timed out", timeout=self.timeout, **log_fields)
            context.add_warning(f"Website fetch timed out after {self.timeout:g}s: {website}")
            return context
        except httpx.HTTPError as e:
            log_with_context(logger, logging.WARNING, f"Website fetch failed: {e}", **log_fields)
            context.add_warning(f"Website scraping failed: {e}")
            return context

        if not response.is_success:
            log_with_context(
                logger, logging.WARNING, "Website returned an error status",
                status=response.status_code, **log_fields,
            )
            context.add_warning(f"Could not access website: {response.status_code}")
            return context

        html = response.text
        page = read_page_metadata(html)

        extracted, model = await self._extract_profile(context, website, html, page)
        self._apply_profile(context, extracted, page)

        logo = find_logo(html, str(response.url), page["og_image"])
        if logo:
            context.enriched_data.logo = logo
            logger.debug(f"[WebScraper] Logo found: {logo.url}")

        context.add_audit(AuditEntry(
            stage=ProposalStage.ENRICH,
            plugin=self.id,
            model=model,
            action="Website scraped and analyzed" if model else "Website scraped",
            success=True,
            metadata={
                "website": website,
                "has_description": bool(context.enriched_data.business_description),
                "has_services": bool(context.enriched_data.services),
                "has_logo": context.enriched_data.logo is not None,
            },
        ))

        log_with_context(logger, logging.INFO, "Website enrichment complete", model=model, **log_fields)
        return context

    async def _extract_profile(
        self,
        context: ProposalContext,
        website: str,
        html: str,
        page: dict[str, str | None],
    ) -> tuple[dict[str, Any], str | None]:
        """Ask the router for a structured profile. Returns ({}, None) on soft failure."""
        if not self.router.get_available_providers():
            context.add_warning("No AI provider configured; website content was not analyzed")
            return {}, None

        task = ModelTask(
            type="extraction",
            system_prompt=EXTRACTION_SYSTEM_PROMPT,
            prompt=EXTRACTION_PROMPT.format(
                website=website,
                title=page["title"] or "Unknown",
                description=page["description"] or "None",
                content=strip_html(html)[:MAX_PAGE_CHARS],
            ),
        )

        try:
            response = await self.router.route(task)
        except AllProvidersFailedError as e:
            logger.warning(f"[WebScraper] Website analysis failed: {e}")
            context.add_warning(f"Website analysis unavailable: {e}")
            return {}, None

        try:
            return parse_llm_json_dict(response.content), response.model
        except ValueError as e:
            logger.warning(f"[WebScraper] Failed to parse AI extraction: {e}")
            context.add_warning("Website analysis returned unreadable output")
            return {}, response.model

    def _apply_profile(
        self,
        context: ProposalContext,
        extracted: dict[str, Any],
        page: dict[str, str | None],
    ) -> None:
        enriched = context.enriched_data
        merchant = context.merchant_data

        description = extracted.get("businessDescription")
        if is_valid_description(description):
            enriched.business_description = description
        elif is_valid_description(page["description"]):
            enriched.business_description = page["description"]

        services = extracted.get("services")
        if isinstance(services, list):
            enriched.services = [str(s) for s in services if s]

        if isinstance(extracted.get("brandLanguage"), str):
            enriched.brand_language = extracted["brandLanguage"]

        social_proof = extracted.get("socialProof")
        if isinstance(social_proof, list):
            enriched.social_proof = [str(s) for s in social_proof if s]

        if not merchant.industry:
            keyword_industry = detect_industry_from_name(merchant.business_name or page["title"] or "")
            ai_industry = extracted.get("industryCategory")
            if keyword_industry:
                merchant.industry = keyword_industry
                logger.info(f"[WebScraper] Industry detected from business name keywords: {keyword_industry}")
            elif isinstance(ai_industry, str) and ai_industry and ai_industry != "other":
                merchant.industry = ai_industry
                logger.info(f"[WebScraper] Industry from AI: {ai_industry}")

        if not merchant.address:
            merchant.address = format_address(
                scalar_text(extracted.get("streetAddress")),
                scalar_text(extracted.get("city")),
                scalar_text(extracted.get("state")),
                scalar_text(extracted.get("zip")),
            )

        if not merchant.phone and isinstance(extracted.get("phone"), str):
            merchant.phone = extract_phone_number(extracted["phone"]) or extracted["phone"]
