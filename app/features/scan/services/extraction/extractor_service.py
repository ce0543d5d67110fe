import os
import re
from typing import List, Optional
from urllib.parse import urlparse

from selenium import webdriver
from selenium.common.exceptions import NoSuchElementException
from selenium.webdriver.common.by import By

from app.features.scan.schemas.content import (
    HeadingData,
    ImageData,
    LinkData,
    ListData,
    PageMetadata,
    ScrapedContent,
)
from app.features.scan.schemas.results import (
    AccessibilityReport,
    SecretFinding,
    SecretScanReport,
)
from app.features.scan.schemas.seo import MetadataField, MetadataIssue, SeoReport


class ExtractorService:
    """
    Thin DOM primitives. Every method takes a driver with a loaded page as
    its first argument so the browser engine can run it on a worker thread.
    """

    # SEO Best Practice Constants
    TITLE_MIN_LENGTH = 30
    TITLE_MAX_LENGTH = 70
    DESCRIPTION_MIN_LENGTH = 120
    DESCRIPTION_MAX_LENGTH = 160

    SECRET_PATTERNS = [
        ("AWS Access Key ID", re.compile(r"AKIA[0-9A-Z]{16}"), "High"),
        ("Google API Key", re.compile(r"AIza[0-9A-Za-z\-_]{35}"), "High"),
        ("GitHub Personal Access Token", re.compile(r"ghp_[0-9a-zA-Z]{36}"), "High"),
        ("GitHub OAuth Token", re.compile(r"gho_[0-9a-zA-Z]{36}"), "High"),
        ("Stripe Live Secret Key", re.compile(r"sk_live_[0-9a-zA-Z]{24}"), "High"),
        ("Stripe Live Publishable Key", re.compile(r"pk_live_[0-9a-zA-Z]{24}"), "Medium"),
        ("Stripe Test Secret Key", re.compile(r"sk_test_[0-9a-zA-Z]{24}"), "Medium"),
        ("OpenAI API Key", re.compile(r"sk-[a-zA-Z0-9]{48}"), "High"),
        ("Slack Bot Token", re.compile(r"xoxb-[0-9]{11}-[0-9]{11}-[0-9a-zA-Z]{24}"), "High"),
    ]
    SECRET_PLACEHOLDERS = ("example", "placeholder", "demo", "your-api-key-here", "xxxxxxxx")


    @staticmethod
    def extract_headings(driver: webdriver.Chrome) -> List[HeadingData]:
        headings = []
        for element in driver.find_elements(By.CSS_SELECTOR, "h1, h2, h3, h4, h5, h6"):
            tag = (element.tag_name or "h1").lower()
            level = int(tag[1]) if len(tag) == 2 and tag[1].isdigit() else 1
            headings.append(HeadingData(
                level=level,
                text=(element.text or "").strip(),
                id=element.get_attribute("id") or None,
            ))
        return headings


    @staticmethod
    def extract_images(driver: webdriver.Chrome) -> List[ImageData]:
        images = []
        for img in driver.find_elements(By.TAG_NAME, "img"):
            src = img.get_attribute("src")
            alt = img.get_attribute("alt") or ""
            if src:
                images.append(ImageData(src=src, alt=alt, title=img.get_attribute("title") or None))
        return images


    @staticmethod
    def extract_links(driver: webdriver.Chrome) -> List[LinkData]:
        host = urlparse(driver.current_url or "").netloc
        links = []
        for anchor in driver.find_elements(By.CSS_SELECTOR, "a[href]"):
            href = anchor.get_attribute("href")
            if not href:
                continue
            link_host = urlparse(href).netloc
            links.append(LinkData(
                href=href,
                text=(anchor.text or "").strip(),
                is_external=bool(link_host) and link_host != host,
            ))
        return links


    @staticmethod
    def _meta_content(driver: webdriver.Chrome, selector: str) -> Optional[str]:
        try:
            element = driver.find_element(By.CSS_SELECTOR, selector)
        except NoSuchElementException:
            return None
        value = element.get_attribute("content")
        return value.strip() if value else None


    @staticmethod
    def extract_content(driver: webdriver.Chrome) -> ScrapedContent:
        """
        Structural text of the loaded page.

        Args:
            driver: Selenium WebDriver with a loaded page

        Returns:
            ScrapedContent with headings, paragraphs, lists, images, links and metadata
        """
        paragraphs = [
            text for text in ((p.text or "").strip() for p in driver.find_elements(By.TAG_NAME, "p"))
            if text
        ]

        lists = []
        for list_element in driver.find_elements(By.CSS_SELECTOR, "ul, ol"):
            items = [
                text for text in ((li.text or "").strip() for li in list_element.find_elements(By.TAG_NAME, "li"))
                if text
            ]
            if items:
                kind = "ordered" if (list_element.tag_name or "").lower() == "ol" else "unordered"
                lists.append(ListData(type=kind, items=items))

        keywords = ExtractorService._meta_content(driver, 'meta[name="keywords"]') or ""
        metadata = PageMetadata(
            description=ExtractorService._meta_content(driver, 'meta[name="description"]') or "",
            author=ExtractorService._meta_content(driver, 'meta[name="author"]') or "",
            publish_date=ExtractorService._meta_content(driver, 'meta[property="article:published_time"]') or "",
            modified_date=ExtractorService._meta_content(driver, 'meta[property="article:modified_time"]') or "",
            keywords=[k.strip() for k in keywords.split(",") if k.strip()],
        )

        return ScrapedContent(
            url=driver.current_url,
            title=(driver.title or "").strip(),
            headings=ExtractorService.extract_headings(driver),
            paragraphs=paragraphs,
            lists=lists,
            images=ExtractorService.extract_images(driver),
            links=ExtractorService.extract_links(driver),
            metadata=metadata,
        )


    @staticmethod
    def extract_accessibility(driver: webdriver.Chrome) -> AccessibilityReport:
        """
        Structural accessibility findings.
        Flags missing alt, unlabeled form controls/buttons, icon-only links, empty headings.
        """
        report = AccessibilityReport(url=driver.current_url)

        for img in driver.find_elements(By.TAG_NAME, "img"):
            alt = (img.get_attribute("alt") or "").strip()
            if not alt:
                report.images_missing_alt.append(img.get_attribute("src") or "")

        # Inputs/select/textarea without a label/aria-label/title or wrapped label
        for inp in driver.find_elements(By.CSS_SELECTOR, "input, textarea, select"):
            itype = (inp.get_attribute("type") or "").lower()
            if itype in {"hidden", "button", "submit", "reset"}:
                continue
            has_label = bool(
                (inp.get_attribute("aria-label") or "").strip()
                or (inp.get_attribute("title") or "").strip()
            )
            input_id = inp.get_attribute("id")
            if not has_label and input_id:
                has_label = bool(driver.find_elements(By.CSS_SELECTOR, f"label[for='{input_id}']"))
            if not has_label:
                has_label = bool(inp.find_elements(By.XPATH, "ancestor::label[1]"))
            if not has_label:
                report.inputs_missing_label.append(inp.get_attribute("name") or input_id or itype or "")

        for btn in driver.find_elements(By.CSS_SELECTOR, "button, input[type='button'], input[type='submit'], input[type='reset']"):
            label = (
                (btn.text or "").strip()
                or (btn.get_attribute("value") or "").strip()
                or (btn.get_attribute("aria-label") or "").strip()
                or (btn.get_attribute("title") or "").strip()
            )
            if not label:
                report.buttons_missing_label.append(btn.get_attribute("id") or btn.get_attribute("name") or "")

        # Icon-only links
        for link in driver.find_elements(By.TAG_NAME, "a"):
            label = (
                (link.text or "").strip()
                or (link.get_attribute("aria-label") or "").strip()
                or (link.get_attribute("title") or "").strip()
            )
            if not label:
                report.links_missing_label.append(link.get_attribute("href") or "")

        for tag in ["h1", "h2", "h3", "h4", "h5", "h6"]:
            for el in driver.find_elements(By.TAG_NAME, tag):
                if not (el.text or "").strip():
                    report.empty_headings.append(tag)

        return report


    @staticmethod
    def _validate_length(field: str, value: Optional[str], minimum: int, maximum: int, missing_message: str) -> MetadataField:
        if not value:
            return MetadataField(
                value=None,
                length=0,
                is_valid=False,
                issues=[MetadataIssue(field=field, severity="error", message=missing_message)],
            )

        issues: List[MetadataIssue] = []
        length = len(value)
        if length < minimum:
            issues.append(MetadataIssue(
                field=field,
                severity="warning",
                message=f"{field.capitalize()} is too short ({length} chars). Recommended: {minimum}-{maximum} characters.",
            ))
        elif length > maximum:
            issues.append(MetadataIssue(
                field=field,
                severity="warning",
                message=f"{field.capitalize()} is too long ({length} chars). Recommended: {minimum}-{maximum} characters. Long values may be truncated in search results.",
            ))
        return MetadataField(value=value, length=length, is_valid=not issues, issues=issues)


    @staticmethod
    def extract_metadata(driver: webdriver.Chrome) -> SeoReport:
        """Extract and validate SEO metadata from a loaded web page."""
        try:
            title_value = (driver.find_element(By.TAG_NAME, "title").get_attribute("textContent") or "").strip()
        except NoSuchElementException:
            title_value = None
        title = ExtractorService._validate_length(
            "title",
            title_value,
            ExtractorService.TITLE_MIN_LENGTH,
            ExtractorService.TITLE_MAX_LENGTH,
            "Page title is missing. Every page should have a <title> tag.",
        )
        description = ExtractorService._validate_length(
            "description",
            ExtractorService._meta_content(driver, 'meta[name="description"]'),
            ExtractorService.DESCRIPTION_MIN_LENGTH,
            ExtractorService.DESCRIPTION_MAX_LENGTH,
            'Meta description is missing. Add a <meta name="description" content="..."> tag for better SEO.',
        )

        open_graph = {
            key: ExtractorService._meta_content(driver, f'meta[property="og:{key}"]')
            for key in ("title", "description", "image", "url", "type")
        }

        try:
            canonical = driver.find_element(By.CSS_SELECTOR, 'link[rel="canonical"]').get_attribute("href")
        except NoSuchElementException:
            canonical = None

        return SeoReport(
            url=driver.current_url,
            title=title,
            description=description,
            keywords=ExtractorService._meta_content(driver, 'meta[name="keywords"]'),
            canonical_url=canonical.strip() if canonical else None,
            viewport=ExtractorService._meta_content(driver, 'meta[name="viewport"]'),
            open_graph={k: v for k, v in open_graph.items() if v},
            h1_count=len(driver.find_elements(By.TAG_NAME, "h1")),
        )


    @staticmethod
    def _mask(value: str) -> str:
        if len(value) <= 8:
            return "*" * len(value)
        return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


    @staticmethod
    def scan_for_secrets(driver: webdriver.Chrome) -> SecretScanReport:
        """Look for credentials exposed in the page source. Matches are masked."""
        source = driver.page_source or ""
        report = SecretScanReport(url=driver.current_url)
        seen = set()
        for name, pattern, risk in ExtractorService.SECRET_PATTERNS:
            for match in pattern.findall(source):
                if match in seen:
                    continue
                if any(p in match.lower() for p in ExtractorService.SECRET_PLACEHOLDERS):
                    continue
                seen.add(match)
                report.findings.append(SecretFinding(pattern=name, match=ExtractorService._mask(match), risk_level=risk))
        return report


    @staticmethod
    def capture_screenshot(driver: webdriver.Chrome, path: str) -> str:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        if not driver.save_screenshot(path):
            raise IOError(f"Could not write screenshot to {path}")
        return path
