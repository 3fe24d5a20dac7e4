from urllib.parse import quote, urlparse, urlunparse

from requests import Session

from jtoolchain import config
from jtoolchain.version import __version__


def proxy_url(proxy):
    """ Formats a proxy configuration dictionary as a proxy URL.

    Credentials, if any, are embedded in the URL which makes requests
    send them as basic proxy authorization.
    """
    netloc = "{}:{}".format(proxy["host"], proxy["port"]) if proxy.get("port") else proxy["host"]
    if proxy.get("username"):
        credentials = quote(proxy["username"], safe="")
        if proxy.get("password"):
            credentials += ":" + quote(proxy["password"], safe="")
        netloc = credentials + "@" + netloc
    return urlunparse((proxy.get("protocol") or "http", netloc, "", "", "", ""))


def create_session(proxy=None):
    """ Creates the HTTP session used for catalog queries and downloads.

    Args:
        proxy (dict, optional): Proxy host, port, protocol, username and
            password. Defaults to the [proxy] configuration section.
    """
    session = Session()
    session.headers["User-Agent"] = "jtoolchain/{}".format(__version__)
    proxy = proxy if proxy is not None else config.get_proxy()
    if proxy:
        url = proxy_url(proxy)
        session.proxies.update({"http": url, "https": url})
    return session


def redact(url):
    """ Removes the password from a URL so that it can be logged. """
    url_parsed = urlparse(url)
    if url_parsed.password:
        url_parsed = url_parsed._replace(netloc=url_parsed.netloc.replace(url_parsed.password, "****"))
    return urlunparse(url_parsed)
