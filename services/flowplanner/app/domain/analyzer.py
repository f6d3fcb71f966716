"""Free-text prompt analysis into normalized project requirements."""
from __future__ import annotations

import re

from .documents import Constraints, Preferences, ProjectRequirements, Technology

TECH_KEYWORDS: dict[str, dict[str, list[str]]] = {
    "frontend": {
        "react": ["react", "jsx", "redux", "hooks", "component"],
        "vue": ["vue", "vuejs", "vuex", "composition api"],
        "angular": ["angular", "rxjs", "directive"],
        "nextjs": ["next.js", "nextjs", "server-side", "ssr", "ssg"],
        "svelte": ["svelte", "sveltekit"],
        "flutter": ["flutter", "dart", "cross-platform"],
    },
    "backend": {
        "nodejs": ["node", "nodejs", "express", "fastify", "nestjs", "koa"],
        "python": ["python", "django", "fastapi", "flask", "pyramid"],
        "java": ["java", "spring", "springboot", "jakarta", "maven"],
        "go": ["golang", " go ", "gin", "echo", "fiber"],
        "rust": ["rust", "actix", "rocket", "axum"],
        "ruby": ["ruby", "rails", "sinatra"],
        "php": ["php", "laravel", "symfony"],
    },
    "database": {
        "postgres": ["postgres", "postgresql", "psql", "relational"],
        "mysql": ["mysql", "mariadb"],
        "mongodb": ["mongodb", "mongo", "nosql"],
        "redis": ["redis", "pub/sub"],
        "sqlite": ["sqlite"],
    },
    "testing": {
        "jest": ["jest", "unit test", "snapshot"],
        "pytest": ["pytest", "python test", "fixture"],
        "playwright": ["playwright", "e2e", "end-to-end", "browser"],
        "cypress": ["cypress", "e2e test"],
        "vitest": ["vitest", "vite test"],
        "mocha": ["mocha", "chai", "sinon"],
    },
}

PROJECT_TYPE_PATTERNS: dict[str, list[str]] = {
    "web": ["web app", "website", "spa", "single page", "frontend", "ui", "user interface"],
    "mobile": ["mobile", "ios", "android", "flutter", "react native"],
    "api": ["api", "rest", "graphql", "backend", "server", "service"],
    "fullstack": ["full stack", "fullstack", "full-stack", "complete app"],
    "microservice": ["microservice", "micro-service", "distributed", "service mesh"],
    "cli": ["cli", "command line", "terminal", "console", "script"],
}

FEATURE_KEYWORDS: dict[str, list[str]] = {
    "authentication": ["auth", "login", "signup", "oauth", "jwt", "session", "user management"],
    "database": ["database", "db", "data storage", "persistence", "orm", "query"],
    "api": ["api", "endpoint", "rest", "graphql", "websocket", "real-time"],
    "testing": ["test", "testing", "tdd", "e2e"],
    "deployment": ["deploy", "deployment", "docker", "kubernetes", "ci/cd", "pipeline"],
    "documentation": ["docs", "documentation", "readme", "swagger"],
    "security": ["security", "encryption", "csrf", "xss", "vulnerability", "secure"],
    "performance": ["performance", "optimization", "caching", "lazy loading", "speed"],
    "internationalization": ["i18n", "internationalization", "localization", "multi-language"],
    "monitoring": ["monitoring", "logging", "analytics", "metrics", "observability"],
    "payment": ["payment", "stripe", "paypal", "billing", "subscription"],
    "search": ["search", "elasticsearch", "algolia", "full-text", "indexing"],
    "messaging": ["messaging", "chat", "notification", "email", "sms", "push"],
    "fileUpload": ["file upload", "image upload", "s3", "media"],
}

_PARALLEL_RE = re.compile(r"(\d+)\s*parallel", re.IGNORECASE)
_TIME_RE = re.compile(r"(\d+)\s*(hours?|minutes?|hrs?|mins?)\b", re.IGNORECASE)


class RequirementAnalyzer:
    """Keyword-table analysis; every detector works on the lower-cased prompt."""

    def analyze(self, description: str) -> ProjectRequirements:
        text = f" {description.lower()} "
        technology = self.detect_technology(text)
        return ProjectRequirements(
            description=description,
            project_type=self.detect_project_type(text),
            technology=technology,
            features=self.detect_features(text),
            preferences=self.detect_preferences(text),
            constraints=self.detect_constraints(text),
        )

    def _has_category(self, text: str, category: str) -> bool:
        return any(keyword in text for keywords in TECH_KEYWORDS[category].values() for keyword in keywords)

    def detect_project_type(self, text: str) -> str:
        scores = {
            project_type: sum(1 for pattern in patterns if pattern in text)
            for project_type, patterns in PROJECT_TYPE_PATTERNS.items()
        }
        has_backend = self._has_category(text, "backend")
        has_frontend = self._has_category(text, "frontend")
        if has_backend and has_frontend:
            scores["fullstack"] += 2
        elif has_backend:
            scores["api"] += 2
        elif has_frontend:
            scores["web"] += 2

        best = max(scores.values())
        if best == 0:
            return "fullstack"
        return next(project_type for project_type, score in scores.items() if score == best)

    def detect_technology(self, text: str) -> Technology:
        detected: dict[str, list[str]] = {}
        for category, techs in TECH_KEYWORDS.items():
            found = [tech for tech, keywords in techs.items() if any(keyword in text for keyword in keywords)]
            if found:
                detected[category] = found

        if "frontend" not in detected and "frontend" in text:
            detected["frontend"] = ["react"]
        if "backend" not in detected and ("backend" in text or "api" in text):
            detected["backend"] = ["nodejs"]
        if "database" not in detected and ("database" in text or "data" in text):
            detected["database"] = ["postgres"]
        if "testing" not in detected and "test" in text:
            frontend = detected.get("frontend", [])
            backend = detected.get("backend", [])
            if "react" in frontend or "nextjs" in frontend:
                detected["testing"] = ["jest", "playwright"]
            elif "python" in backend:
                detected["testing"] = ["pytest"]
            else:
                detected["testing"] = ["jest"]
        return Technology(**detected)

    def detect_features(self, text: str) -> list[str]:
        features = [
            feature for feature, keywords in FEATURE_KEYWORDS.items() if any(keyword in text for keyword in keywords)
        ]
        inferred: list[str] = []
        if "crud" in text or "create read update delete" in text:
            inferred.extend(["database", "api"])
        if ("user" in text or "account" in text) and "authentication" not in features:
            inferred.append("authentication")
        if ("production" in text or "deploy" in text) and "deployment" not in features:
            inferred.append("deployment")
        return list(dict.fromkeys(features + inferred))

    def detect_preferences(self, text: str) -> Preferences:
        preferences = Preferences()
        if "comprehensive test" in text or "full test" in text:
            preferences.testing = "comprehensive"
        elif "basic test" in text or "minimal test" in text:
            preferences.testing = "basic"
        elif "no test" in text or "skip test" in text:
            preferences.testing = "none"

        if "manual review" in text or "human review" in text:
            preferences.review = "manual"
        elif "automated review" in text or "auto review" in text:
            preferences.review = "automated"

        if "deploy" in text or "production" in text:
            preferences.deployment = True
        if "document" in text or "readme" in text:
            preferences.documentation = True
        return preferences

    def detect_constraints(self, text: str) -> Constraints:
        constraints = Constraints()
        parallel = _PARALLEL_RE.search(text)
        if parallel:
            constraints.max_parallel = int(parallel.group(1))
        duration = _TIME_RE.search(text)
        if duration:
            value = int(duration.group(1))
            constraints.time_limit = value * 60 if duration.group(2).lower().startswith("h") else value
        return constraints


__all__ = ["RequirementAnalyzer"]
