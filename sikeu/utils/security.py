from urllib.parse import urlparse, urljoin
from flask import request, url_for


def redirect_target(default_endpoint, param='next'):
    """URL tujuan dari ?next= jika masih di host yang sama, selain itu default_endpoint."""
    target = request.args.get(param) or request.form.get(param)
    if target:
        host = urlparse(request.host_url)
        resolved = urlparse(urljoin(request.host_url, target))
        if resolved.scheme in ('http', 'https') and resolved.netloc == host.netloc:
            return target
    return url_for(default_endpoint)
