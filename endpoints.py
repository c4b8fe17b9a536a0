# Publishing service endpoints; update if the service routes change.

BASE_URLS = {
    "production": "https://play.unity.com",
    "staging": "https://connect-staging.unity.com",
    "dev": "https://connect-dev.unity.com",
}

DEFAULT_ENVIRONMENT = "production"

WEBGL = {
    "upload": {
        "method": "POST",
        "path": "/api/webgl/upload",
    },
    "progress": {
        "method": "GET",
        "path": "/api/webgl/progress",
    },
}


def base_url_for(environment: str) -> str:
    return BASE_URLS.get(environment, BASE_URLS[DEFAULT_ENVIRONMENT])
