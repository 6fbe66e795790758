"""
Shipped audit categories.

`base` is the general-purpose rubric. b2b, ecommerce and media reuse its
sections and add per-category weight overrides. Every base rule carries an
explicit weight, and explicit weights win over overrides, so the overrides
only take effect for rules declared without one.
"""
from typing import Dict, Mapping

from siteaudit.scoring.rubrics import Rubric, Rule, RuleKind, Section, freeze_rubric

K = RuleKind

SEO = Section(
    label="Search Engine Optimization",
    rules=(
        Rule("indexable", K.BOOLEAN, "Indexing Readiness", 0.15,
             description="No noindex directive on the homepage."),
        Rule("httpsUsage", K.BOOLEAN, "HTTPS Usage", 0.10,
             description="Site is served over HTTPS."),
        Rule("canonicalPresent", K.BOOLEAN, "Canonical Present", 0.08,
             description="A <link rel=\"canonical\"> is declared."),
        Rule("langAttrPresent", K.BOOLEAN, "HTML lang Present", 0.05,
             description="The <html> element declares a language."),
        Rule("robotsTxtPresent", K.BOOLEAN, "robots.txt Present", 0.05),
        Rule("sitemapPresent", K.BOOLEAN, "sitemap.xml Present", 0.05),
        Rule("metaTagsPresent", K.NORMALIZED, "Meta Tags Present", 0.12,
             description="Title and meta description: both 1, one 0.5, neither 0."),
        Rule("altTextCoverage", K.NORMALIZED, "Alt Text Coverage", 0.10,
             description="Share of informative images with alternative text."),
        Rule("headerStructure", K.ENUM_QUALITY, "Header Structure", 0.10),
        Rule("h1Single", K.ENUM_QUALITY, "H1 Is Single", 0.05,
             description="Exactly one <h1> on the homepage."),
        Rule("internalLinks", K.NORMALIZED, "Internal Linking (norm.)", 0.10),
        Rule("externalLinks", K.NORMALIZED, "External Link Diversity", 0.05),
        Rule("structuredDataPresent", K.BOOLEAN, "Structured Data Present", 0.10,
             description="JSON-LD or microdata found."),
    ),
    weights_by_category={
        "ecommerce": {"structuredDataPresent": 0.14, "internalLinks": 0.12, "altTextCoverage": 0.12},
        "b2b": {"canonicalPresent": 0.10, "internalLinks": 0.11},
        "media": {"externalLinks": 0.08, "altTextCoverage": 0.12},
    },
)

PERFORMANCE = Section(
    label="Performance",
    rules=(
        Rule("pageSpeedScore", K.LAB_SOURCED, "Page Speed", 1.0,
             description="Lab performance score (median of runs, optionally blended with field data)."),
    ),
)

ACCESSIBILITY = Section(
    label="Accessibility",
    rules=(
        Rule("accessibilityScore", K.LAB_SOURCED, "Accessibility (LH)", 1.0,
             description="Lab accessibility score."),
    ),
)

CONTENT = Section(
    label="Content Quality & Relevance",
    rules=(
        Rule("titleMatch", K.SCALED_MATCH, "Title Tag Match", 0.20,
             description="Primary topic keyword appears in the title."),
        Rule("metaMatch", K.SCALED_MATCH, "Meta Description Match", 0.15),
        Rule("headerMatch", K.SCALED_MATCH, "Header Keyword Use", 0.15),
        Rule("semanticScore", K.NORMALIZED, "Semantic Relevance", 0.25),
        Rule("densityScore", K.NORMALIZED, "Keyword Density", 0.10,
             description="Primary keyword density near 1-3% of main content."),
        Rule("wordCountNormalized", K.NORMALIZED, "Word Count (Home)", 0.15,
             description="Main content length near 300-1200 words."),
        Rule("trustSignalsPresent", K.BOOLEAN, "Trust Signals Present", 0.10,
             description="Reviews, testimonials or rating markup."),
    ),
)

UX = Section(
    label="User Experience",
    rules=(
        Rule("sectionCount", K.COUNT_RANGE, "Section Count (Home)", 0.20, ideal_range=(4, 12),
             description="Number of content sections on the homepage."),
        Rule("domDepthRatio", K.NORMALIZED, "DOM Depth Ratio", 0.20),
        Rule("headerFlow", K.ENUM_QUALITY, "Header Hierarchy Flow", 0.15),
        Rule("ctaClarity", K.NORMALIZED, "CTA Clarity", 0.25,
             description="Clear calls to action in the main content."),
        Rule("mobileConsistency", K.NORMALIZED, "Mobile Consistency", 0.15),
        Rule("brokenLinksRatio", K.NUMERIC_INVERSE, "Broken Links (inverse)", 0.05,
             description="Share of sampled links that failed; lower is better."),
    ),
)

BASE: Rubric = freeze_rubric({
    "seo": SEO,
    "performance": PERFORMANCE,
    "accessibility": ACCESSIBILITY,
    "content": CONTENT,
    "ux": UX,
})


def _derive(category: str, overrides: Mapping[str, Mapping[str, float]]) -> Rubric:
    sections: Dict[str, Section] = dict(BASE)
    for name, weights in overrides.items():
        sections[name] = sections[name].with_overrides(category, weights)
    return freeze_rubric(sections)


B2B = _derive("b2b", {
    "seo": {"canonicalPresent": 0.12, "internalLinks": 0.12},
    "content": {"semanticScore": 0.30, "wordCountNormalized": 0.20, "trustSignalsPresent": 0.12},
    "ux": {"sectionCount": 0.24, "headerFlow": 0.18},
    "performance": {"pageSpeedScore": 0.60, "bestPracticesScore": 0.40},
})

ECOMMERCE = _derive("ecommerce", {
    "seo": {
        "structuredDataPresent": 0.16,
        "internalLinks": 0.12,
        "altTextCoverage": 0.12,
        "indexable": 0.14,
        "metaTagsPresent": 0.12,
    },
    "performance": {"pageSpeedScore": 0.85, "bestPracticesScore": 0.15},
    "content": {
        "trustSignalsPresent": 0.18,
        "semanticScore": 0.24,
        "headerMatch": 0.16,
        "wordCountNormalized": 0.12,
        "densityScore": 0.08,
    },
    "ux": {"ctaClarity": 0.34, "mobileConsistency": 0.20},
})

MEDIA = _derive("media", {
    "seo": {
        "externalLinks": 0.14,
        "altTextCoverage": 0.12,
        "structuredDataPresent": 0.12,
        "canonicalPresent": 0.10,
        "metaTagsPresent": 0.12,
        "indexable": 0.12,
    },
    "performance": {"pageSpeedScore": 0.88, "bestPracticesScore": 0.12},
    "content": {
        "semanticScore": 0.30,
        "headerMatch": 0.18,
        "wordCountNormalized": 0.16,
        "trustSignalsPresent": 0.10,
        "densityScore": 0.08,
    },
    "ux": {
        "domDepthRatio": 0.26,
        "mobileConsistency": 0.18,
        "sectionCount": 0.16,
        "headerFlow": 0.14,
        "ctaClarity": 0.16,
    },
})

CATEGORIES: Mapping[str, Rubric] = {
    "base": BASE,
    "b2b": B2B,
    "ecommerce": ECOMMERCE,
    "media": MEDIA,
}
