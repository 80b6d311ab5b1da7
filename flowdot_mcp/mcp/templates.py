"""Script template generator for get_custom_node_template (local, no API call).

Produces a ``processData(inputs, properties, llm)`` skeleton whose return keys
match the declared outputs, so the generated script validates cleanly.
"""

from __future__ import annotations

from typing import Any

_DEFAULTS: dict[str, str] = {
    "text": "''",
    "number": "0",
    "boolean": "false",
    "json": "{}",
    "array": "[]",
}

_USAGE_NOTES = """### Usage Notes:
- The `processData` function is auto-invoked by the runtime
- Return keys MUST match output names exactly (case-sensitive)
- Available globals: console, JSON, Math, String.prototype.trim, Array.isArray
- No require/import, eval, process, global, or file system access"""

_LLM_NOTES = """### LLM Capability (Enabled):
When you create this node with `llm_enabled: true`:
- Users see Quick Select buttons (FlowDot, Simple, Capable, Complex)
- Your script can call `llm.call()` to make AI requests

**llm.call() syntax:**
```javascript
const result = llm.call({
  prompt: "Your prompt",        // Required
  systemPrompt: "Instructions", // Optional
  temperature: 0.7,             // Optional (0-2)
  maxTokens: 1000               // Optional
});
```

**Response structure:**
```javascript
{
  success: boolean,
  response: string,      // LLM's response
  error: string | null,  // Error if failed
  provider: string,
  model: string,
  tokens: { prompt, response, total }
}
```"""


def default_value(data_type: str | None) -> str:
    return _DEFAULTS.get(data_type or "any", "null")


def _trailing(description: str | None) -> str:
    return f" // {description}" if description else ""


def render_script(
    inputs: list[dict[str, Any]],
    outputs: list[dict[str, Any]],
    properties: list[dict[str, Any]] | None = None,
    llm_enabled: bool = False,
) -> str:
    lines = ["function processData(inputs, properties, llm) {"]

    if inputs:
        lines.append("  // Get inputs")
        for i in inputs:
            lines.append(
                f"  const {i['name']} = inputs.{i['name']} || {default_value(i.get('dataType'))};"
                f"{_trailing(i.get('description'))}"
            )
        lines.append("")

    if properties:
        lines.append("  // Get properties")
        for p in properties:
            lines.append(
                f"  const {p['key']} = properties.{p['key']} || {default_value(p.get('dataType'))};"
                f"{_trailing(p.get('description'))}"
            )
        lines.append("")

    if llm_enabled:
        subject = inputs[0]["name"] if inputs else "inputs.YourInput"
        lines += [
            "  // LLM call example (llm_enabled is true)",
            "  const llmResult = llm.call({",
            f"    prompt: `Your prompt here using ${{{subject}}}`,",
            '    systemPrompt: "Optional system instructions",  // Optional',
            "    temperature: 0.7,  // Optional (0-2)",
            "    maxTokens: 1000    // Optional",
            "  });",
            "",
            "  if (!llmResult.success) {",
            '    console.error("LLM error:", llmResult.error);',
            "  }",
            "",
        ]
    else:
        lines += ["  // Add your logic here", ""]

    lines.append("  return {")
    for n, o in enumerate(outputs):
        value = inputs[0]["name"] if inputs else default_value(o.get("dataType"))
        comma = "," if n < len(outputs) - 1 else ""
        lines.append(f"    {o['name']}: {value}{comma} // {o.get('description') or o.get('dataType', 'any')}")
    lines += ["  };", "}"]
    return "\n".join(lines)


def _port_lines(prefix: str, ports: list[dict[str, Any]], key: str = "name") -> list[str]:
    return [
        f"- `{prefix}{p[key]}` ({p.get('dataType', 'any')})"
        + (f" - {p['description']}" if p.get("description") else "")
        for p in ports
    ]


def render_template_response(
    inputs: list[dict[str, Any]],
    outputs: list[dict[str, Any]],
    properties: list[dict[str, Any]] | None = None,
    llm_enabled: bool = False,
) -> str:
    script = render_script(inputs, outputs, properties, llm_enabled)
    parts = [
        "## Custom Node Script Template",
        "",
        "```javascript",
        script,
        "```",
        "",
        "### Inputs Available:",
        *_port_lines("inputs.", inputs),
        "",
        "### Outputs Expected:",
        *_port_lines("", outputs),
    ]
    if properties:
        parts += ["", "### Properties Available:", *_port_lines("properties.", properties, key="key")]
    parts += ["", _USAGE_NOTES]
    if llm_enabled:
        parts += ["", _LLM_NOTES]
    return "\n".join(parts)
