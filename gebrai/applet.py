import json

from gebrai.data_classes import GeoGebraConfig

DEPLOY_SCRIPT_URL = "https://www.geogebra.org/apps/deployggb.js"

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <title>GeoGebra Applet</title>
    <script src="{script_url}"></script>
</head>
<body>
    <div id="ggb-element"></div>
    <script>
        window.ggbReady = false;
        window.ggbApplet = null;
        window.ggbOnInit = function(name) {{
            window.ggbApplet = window[name];
            window.ggbReady = true;
        }};
        var parameters = {parameters};
        parameters.appletOnLoad = function(api) {{
            window.ggbApplet = api;
            if (api.enableCAS) {{
                api.enableCAS(true);
            }}
            window.ggbReady = true;
        }};
        var applet = new GGBApplet(parameters, true);
        window.addEventListener("load", function() {{
            applet.inject("ggb-element");
        }});
    </script>
</body>
</html>
"""


def render_applet_page(config: GeoGebraConfig, script_url: str = DEPLOY_SCRIPT_URL) -> str:
    """HTML document that loads the GeoGebra deploy script and injects one applet."""
    parameters = config.to_applet_parameters()
    parameters.update({
        "enableLabelDrags": True,
        "enableShiftDragZoom": True,
        "enableCAS": True,
        "enable3D": False,
        "useBrowserForJS": False,
        "preventFocus": True,
    })
    return _PAGE_TEMPLATE.format(script_url=script_url, parameters=json.dumps(parameters))
