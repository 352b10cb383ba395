import json

from django.http import JsonResponse
from django.views.decorators.http import require_POST

from accounts.activity import log_activity
from accounts.permissions import permission_required

from .generator import AssistantError, generate_post_html


@permission_required("add-resource")
@require_POST
def generate_content(request):
    if request.content_type == "application/json":
        try:
            payload = json.loads(request.body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError):
            return JsonResponse({"error": "Invalid JSON"}, status=400)
        prompt = payload.get("prompt") if isinstance(payload, dict) else ""
    else:
        prompt = request.POST.get("prompt")

    prompt = (prompt or "").strip() if isinstance(prompt, str) else ""
    if not prompt:
        return JsonResponse({"error": "Prompt is required"}, status=400)

    try:
        html = generate_post_html(prompt)
    except AssistantError as exc:
        return JsonResponse({"error": str(exc)}, status=500)

    log_activity(request.user, "Generated content with the AI assistant", {"prompt": prompt[:200]})
    return JsonResponse({"html": html})
