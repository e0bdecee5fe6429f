"""
Flask route handlers for the REST API.
"""

import re
import sys
import traceback

from flask import jsonify, request
from sqlalchemy import text

from clinicapi import assistants as assistant_service
from clinicapi import diagnoses as diagnosis_service
from clinicapi import treatments as treatment_service
from clinicapi.api.auth import roles_required, token_required
from clinicapi.config import API_PREFIX, DELETE_ROLES, WRITE_ROLES
from clinicapi.database import clamp_paging
from clinicapi.errors import AppError, NotFoundError, ValidationError
from clinicapi.rbac import (
    ensure_access,
    scope_clinic_param,
    scope_create_clinic,
    scope_list_filter,
)
from clinicapi.responses import (
    assistant_response,
    diagnosis_response,
    pagination,
    treatment_response,
)
from clinicapi.schemas import (
    AssistantCreate,
    AssistantStatus,
    AssistantUpdate,
    DiagnosisCreate,
    DiagnosisUpdate,
    FeePreview,
    TreatmentCreate,
    TreatmentUpdate,
    parse_payload,
    to_service_data,
)


# ── Request helpers ──────────────────────────────────────────────────

def _body():
    """JSON body, or the form fields of a multipart/urlencoded request."""
    if request.is_json:
        return request.get_json(silent=True)
    return request.form.to_dict()


def _bool_arg(name):
    value = request.args.get(name)
    if value is None:
        return None
    return value == "true"


def _float_arg(name):
    value = request.args.get(name)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


def _sort_args():
    """(column, order) from sortBy/sortOrder; camelCase names map to columns."""
    sort_by = request.args.get("sortBy") or "name"
    sort_by = re.sub(r"(?<!^)(?=[A-Z])", "_", sort_by).lower()
    sort_order = "desc" if request.args.get("sortOrder") == "desc" else "asc"
    return sort_by, sort_order


def _paging():
    return clamp_paging(request.args.get("page"), request.args.get("limit"))


def _success(data, status=200, **extra):
    return jsonify({"status": "success", **extra, "data": data}), status


def register_routes(app, engine):
    """Register all API routes on the Flask *app*."""

    def load_checked(finder, entity_id, label):
        # Existence first so a missing record is always a 404.
        item = finder(engine, entity_id)
        if item is None:
            raise NotFoundError(f"{label} not found")
        ensure_access(request.caller, item.clinic, label.lower())
        return item

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "Clinic Management API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "treatments": f"{API_PREFIX}/treatments",
                "diagnoses": f"{API_PREFIX}/diagnoses",
                "assistants": f"{API_PREFIX}/assistants",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        database_ok = False
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            database_ok = True
        except Exception as e:
            print(f"[WARN] Health check failed: {e}", file=sys.stderr)

        return jsonify({
            "status": "healthy" if database_ok else "unhealthy",
            "checks": {"database": database_ok},
        }), 200 if database_ok else 503

    # ── Treatments ───────────────────────────────────────────────────

    @app.route(f"{API_PREFIX}/treatments", methods=["GET"])
    @token_required
    def list_treatments():
        filters = scope_list_filter(request.caller, {
            "clinic_id": request.args.get("clinicId"),
            "include_vat": _bool_arg("includeVat"),
            "min_price": _float_arg("minPrice"),
            "max_price": _float_arg("maxPrice"),
            "search": request.args.get("search"),
        })
        sort_by, sort_order = _sort_args()
        page, limit = _paging()
        include_calculations = _bool_arg("includeCalculations") or False

        result = treatment_service.list_treatments(engine, filters, sort_by, sort_order, page, limit)
        items = result["treatments"]
        return _success(
            {"treatments": [treatment_response(t, include_calculations) for t in items]},
            results=len(items),
            pagination=pagination(result["total"], page, limit, result["total_pages"]),
        )

    @app.route(f"{API_PREFIX}/treatments/<treatment_id>", methods=["GET"])
    @token_required
    def get_treatment(treatment_id):
        treatment = load_checked(treatment_service.find_treatment, treatment_id, "Treatment")
        include_calculations = _bool_arg("includeCalculations") or False
        return _success({"treatment": treatment_response(treatment, include_calculations)})

    @app.route(f"{API_PREFIX}/treatments", methods=["POST"])
    @token_required
    @roles_required(WRITE_ROLES)
    def create_treatment():
        payload = parse_payload(TreatmentCreate, _body())
        data = to_service_data(payload)
        data["clinic_id"] = scope_create_clinic(request.caller, data.get("clinic_id"))

        treatment = treatment_service.create_treatment(engine, data)
        return _success({"treatment": treatment_response(treatment, True)}, 201)

    @app.route(f"{API_PREFIX}/treatments/<treatment_id>", methods=["PUT"])
    @token_required
    @roles_required(WRITE_ROLES)
    def update_treatment(treatment_id):
        payload = parse_payload(TreatmentUpdate, _body())
        load_checked(treatment_service.find_treatment, treatment_id, "Treatment")

        treatment = treatment_service.update_treatment(
            engine, treatment_id, to_service_data(payload, partial=True),
        )
        return _success({"treatment": treatment_response(treatment, True)})

    @app.route(f"{API_PREFIX}/treatments/<treatment_id>", methods=["DELETE"])
    @token_required
    @roles_required(DELETE_ROLES)
    def delete_treatment(treatment_id):
        load_checked(treatment_service.find_treatment, treatment_id, "Treatment")
        treatment_service.delete_treatment(engine, treatment_id)
        return _success(None)

    @app.route(f"{API_PREFIX}/treatments/<treatment_id>/calculate-fees", methods=["POST"])
    @token_required
    def calculate_fees(treatment_id):
        payload = parse_payload(FeePreview, _body())
        treatment = load_checked(treatment_service.find_treatment, treatment_id, "Treatment")

        calculations = treatment_service.calculate_treatment_fees(
            engine,
            treatment_id,
            doctor_fee=payload.doctor_fee.to_fee() if payload.doctor_fee else None,
            assistant_fee=payload.assistant_fee.to_fee() if payload.assistant_fee else None,
            include_vat=payload.include_vat,
        )
        return _success({
            "treatmentId": treatment_id,
            "treatmentName": treatment.name,
            "calculations": calculations,
        })

    @app.route(f"{API_PREFIX}/treatments/stats/clinic", methods=["GET"])
    @app.route(f"{API_PREFIX}/treatments/stats/clinic/<clinic_id>", methods=["GET"])
    @token_required
    def treatment_stats(clinic_id=None):
        clinic_id = scope_clinic_param(request.caller, clinic_id)
        stats = treatment_service.treatment_stats(engine, clinic_id)
        return _success({"clinicId": clinic_id, "stats": stats})

    @app.route(f"{API_PREFIX}/treatments/clinic/with-calculations", methods=["GET"])
    @app.route(f"{API_PREFIX}/treatments/clinic/<clinic_id>/with-calculations", methods=["GET"])
    @token_required
    def treatments_with_calculations(clinic_id=None):
        clinic_id = scope_clinic_param(request.caller, clinic_id)
        items = treatment_service.list_treatments_with_calculations(engine, clinic_id)
        return _success(
            {
                "clinicId": clinic_id,
                "treatments": [
                    treatment_response(i["treatment"], calculations=i["calculations"]) for i in items
                ],
            },
            results=len(items),
        )

    # ── Diagnoses ────────────────────────────────────────────────────

    @app.route(f"{API_PREFIX}/diagnoses", methods=["GET"])
    @token_required
    def list_diagnoses():
        filters = scope_list_filter(request.caller, {
            "clinic_id": request.args.get("clinicId"),
            "search": request.args.get("search"),
        })
        sort_by, sort_order = _sort_args()
        page, limit = _paging()

        result = diagnosis_service.list_diagnoses(engine, filters, sort_by, sort_order, page, limit)
        items = result["diagnoses"]
        return _success(
            {"diagnoses": [diagnosis_response(d) for d in items]},
            results=len(items),
            pagination=pagination(result["total"], page, limit, result["total_pages"]),
        )

    @app.route(f"{API_PREFIX}/diagnoses/<diagnosis_id>", methods=["GET"])
    @token_required
    def get_diagnosis(diagnosis_id):
        diagnosis = load_checked(diagnosis_service.find_diagnosis, diagnosis_id, "Diagnosis")
        return _success({"diagnosis": diagnosis_response(diagnosis)})

    @app.route(f"{API_PREFIX}/diagnoses", methods=["POST"])
    @token_required
    @roles_required(WRITE_ROLES)
    def create_diagnosis():
        payload = parse_payload(DiagnosisCreate, _body())
        data = to_service_data(payload)
        data["clinic_id"] = scope_create_clinic(request.caller, data.get("clinic_id"))

        diagnosis = diagnosis_service.create_diagnosis(engine, data)
        return _success({"diagnosis": diagnosis_response(diagnosis)}, 201)

    @app.route(f"{API_PREFIX}/diagnoses/<diagnosis_id>", methods=["PUT"])
    @token_required
    @roles_required(WRITE_ROLES)
    def update_diagnosis(diagnosis_id):
        payload = parse_payload(DiagnosisUpdate, _body())
        load_checked(diagnosis_service.find_diagnosis, diagnosis_id, "Diagnosis")

        diagnosis = diagnosis_service.update_diagnosis(
            engine, diagnosis_id, to_service_data(payload, partial=True),
        )
        return _success({"diagnosis": diagnosis_response(diagnosis)})

    @app.route(f"{API_PREFIX}/diagnoses/<diagnosis_id>", methods=["DELETE"])
    @token_required
    @roles_required(DELETE_ROLES)
    def delete_diagnosis(diagnosis_id):
        load_checked(diagnosis_service.find_diagnosis, diagnosis_id, "Diagnosis")
        diagnosis_service.delete_diagnosis(engine, diagnosis_id)
        return _success(None)

    # ── Assistants ───────────────────────────────────────────────────

    @app.route(f"{API_PREFIX}/assistants", methods=["GET"])
    @token_required
    def list_assistants():
        filters = scope_list_filter(request.caller, {
            "clinic_id": request.args.get("clinicId"),
            "employment_type": request.args.get("employmentType"),
            "is_active": _bool_arg("isActive"),
            "search": request.args.get("search"),
        })
        sort_by, sort_order = _sort_args()
        page, limit = _paging()

        result = assistant_service.list_assistants(engine, filters, sort_by, sort_order, page, limit)
        items = result["assistants"]
        return _success(
            {"assistants": [assistant_response(a) for a in items]},
            results=len(items),
            pagination=pagination(result["total"], page, limit, result["total_pages"]),
        )

    @app.route(f"{API_PREFIX}/assistants/option", methods=["GET"])
    @token_required
    def assistant_options():
        filters = scope_list_filter(request.caller, {
            "clinic_id": request.args.get("clinicId"),
            "employment_type": request.args.get("employmentType"),
            "search": request.args.get("search"),
        })
        sort_by, sort_order = _sort_args()
        options = assistant_service.list_assistant_options(engine, filters, sort_by, sort_order)
        return _success({"assistants": options})

    @app.route(f"{API_PREFIX}/assistants/employment/<employment_type>", methods=["GET"])
    @token_required
    def assistants_by_employment(employment_type):
        caller = request.caller
        clinic_id = None if caller.is_super_admin else caller.clinic_id
        items = assistant_service.list_by_employment_type(engine, employment_type, clinic_id)
        return _success(
            {"assistants": [assistant_response(a) for a in items]},
            results=len(items),
        )

    @app.route(f"{API_PREFIX}/assistants/<assistant_id>", methods=["GET"])
    @token_required
    def get_assistant(assistant_id):
        assistant = load_checked(assistant_service.find_assistant, assistant_id, "Assistant")
        return _success({"assistant": assistant_response(assistant)})

    @app.route(f"{API_PREFIX}/assistants", methods=["POST"])
    @token_required
    @roles_required(WRITE_ROLES)
    def create_assistant():
        payload = parse_payload(AssistantCreate, _body())
        data = to_service_data(payload)
        data["clinic_id"] = scope_create_clinic(request.caller, data.get("clinic_id"))

        assistant = assistant_service.create_assistant(engine, data)
        return _success({"assistant": assistant_response(assistant)}, 201)

    @app.route(f"{API_PREFIX}/assistants/<assistant_id>", methods=["PUT"])
    @token_required
    @roles_required(WRITE_ROLES)
    def update_assistant(assistant_id):
        payload = parse_payload(AssistantUpdate, _body())
        load_checked(assistant_service.find_assistant, assistant_id, "Assistant")

        data = to_service_data(payload, partial=True)
        if not request.caller.is_super_admin:
            data.pop("clinic_id", None)

        assistant = assistant_service.update_assistant(engine, assistant_id, data)
        return _success({"assistant": assistant_response(assistant)})

    @app.route(f"{API_PREFIX}/assistants/<assistant_id>/status", methods=["PATCH"])
    @token_required
    @roles_required(WRITE_ROLES)
    def update_assistant_status(assistant_id):
        payload = parse_payload(AssistantStatus, _body())
        load_checked(assistant_service.find_assistant, assistant_id, "Assistant")

        assistant = assistant_service.update_assistant_status(engine, assistant_id, payload.is_active)
        return _success({"assistant": assistant_response(assistant)})

    @app.route(f"{API_PREFIX}/assistants/<assistant_id>", methods=["DELETE"])
    @token_required
    @roles_required(DELETE_ROLES)
    def delete_assistant(assistant_id):
        load_checked(assistant_service.find_assistant, assistant_id, "Assistant")
        assistant_service.delete_assistant(engine, assistant_id)
        return _success(None)

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(AppError)
    def app_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"status": "fail", "message": "Endpoint not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"status": "fail", "message": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(e):
        original = getattr(e, "original_exception", None) or e
        print(f"[ERROR] Unhandled error: {original}", file=sys.stderr)
        traceback.print_exception(type(original), original, original.__traceback__)
        return jsonify({"status": "error", "message": "Internal server error"}), 500
