"""Wire the configured SERP provider into the estimator's find_ranking callable."""

import functools
import logging
from typing import Optional

from geogrid.core.config import ConfigError, Settings, get_settings
from geogrid.core.estimator import RankLookup
from geogrid.vendors import dataforseo, serpapi_maps

logger = logging.getLogger(__name__)


def build_rank_lookup(settings: Optional[Settings] = None) -> RankLookup:
    settings = settings or get_settings()

    if settings.rank_provider == "serpapi":
        if not settings.serpapi_api_key:
            raise ConfigError("SERPAPI_API_KEY is required for the serpapi rank provider")
        logger.debug("Using SerpAPI Google Maps rank provider")
        return functools.partial(serpapi_maps.find_business_ranking, api_key=settings.serpapi_api_key)

    if not settings.dataforseo_login or not settings.dataforseo_password:
        raise ConfigError("DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD are required for the dataforseo rank provider")
    logger.debug("Using DataForSEO rank provider")
    return functools.partial(
        dataforseo.find_business_ranking,
        login=settings.dataforseo_login,
        password=settings.dataforseo_password,
        task_timeout=settings.task_timeout_seconds,
    )
