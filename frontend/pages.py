import html
from string import Template

HEARTBEAT_INTERVAL_MS = 15_000

INDEX_TEMPLATE = Template("""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>SMS Checker</title>
</head>
<body>
  <h1>SMS Checker</h1>
  <p>Classifications are served by <code>$hostname</code>.</p>
  <form id="sms-form">
    <textarea id="sms" name="sms" rows="6" cols="60"></textarea>
    <br>
    <button type="submit">Check</button>
  </form>
  <p id="result"></p>
  <script>
    const page = "$page";
    const active = (url) => fetch(url + "?page=" + encodeURIComponent(page),
                                  {method: "POST", credentials: "same-origin"});
    active("/sms/active/enter");
    setInterval(() => active("/sms/active/ping"), $interval);
    window.addEventListener("pagehide", () =>
      navigator.sendBeacon("/sms/active/leave?page=" + encodeURIComponent(page)));

    document.getElementById("sms-form").addEventListener("submit", async (ev) => {
      ev.preventDefault();
      const sms = document.getElementById("sms").value;
      const out = document.getElementById("result");
      const resp = await fetch("/sms/", {
        method: "POST",
        headers: {"Content-Type": "application/json"},
        body: JSON.stringify({sms: sms}),
      });
      const body = await resp.json();
      out.textContent = resp.ok ? "Prediction: " + body.result : "Error: " + body.detail;
    });
  </script>
</body>
</html>
""")


def render_index(hostname: str, page: str = "/sms/") -> str:
    return INDEX_TEMPLATE.substitute(
        hostname=html.escape(hostname),
        page=html.escape(page),
        interval=HEARTBEAT_INTERVAL_MS,
    )
