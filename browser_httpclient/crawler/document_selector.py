"""Document exchange selection.

Browsers surface every resource's request/response through one event stream.
The selector picks the exchange representing the page that actually rendered,
skipping redirect hops and sub-resources:

1. the first document exchange, in arrival order, answered with a clean 200;
2. otherwise the exchange recorded for the browser's settled URL;
3. otherwise nothing ("no document correlated").
"""

from urllib.parse import urlsplit, urlunsplit

from browser_httpclient.crawler.exchange_ledger import Exchange, ExchangeLedger
from browser_httpclient.crawler.resource_policy import ResourceType


def is_clean_document(exchange: Exchange) -> bool:
    """Document exchange answered with 200 (never a redirect hop)."""
    return (
        exchange.resource_type == ResourceType.DOCUMENT
        and exchange.has_response
        and not exchange.is_redirect
        and exchange.status == 200
    )


def _url_variants(url: str) -> list[str]:
    """The URL itself plus its bare-origin slash variant.

    Browsers report "http://host/" for a navigation to "http://host".
    """
    variants = [url]
    parts = urlsplit(url)
    if parts.path in ("", "/") and parts.netloc:
        path = "/" if parts.path == "" else ""
        variants.append(urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment)))
    return variants


def select(ledger: ExchangeLedger, final_url: str | None) -> Exchange | None:
    """Select the document exchange for a navigation.

    Args:
        ledger: Exchanges observed during the navigation.
        final_url: URL the browser settled on ("" or None if unknown).

    Returns:
        The document exchange, or None when nothing could be correlated.
    """
    for exchange in ledger.all():
        if is_clean_document(exchange):
            return exchange

    if final_url:
        for candidate in _url_variants(final_url):
            exchange = ledger.lookup(candidate)
            if exchange is not None:
                return exchange

    return None
