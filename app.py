import json
import logging
from datetime import datetime

from flask import Flask, Response, current_app, jsonify, request, stream_with_context

from config import config
from strata.core.errors import (
    GenerationInProgressError,
    ProviderConfigurationError,
    StrataError,
)
from strata.core.models import Language, PlanResponse
from strata.core.planning import PlanningService
from strata.core.llm_providers import LLMProviderFactory
from strata.core.state import GENERIC_ERROR_MESSAGE, AppState
from strata.core.stats import compute_stats
from strata.core.storage import HistoryRepository, create_store

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

STATE_KEY = 'strata_state'


def build_state(cfg=config) -> AppState:
    """Wire the store, repository and planner selected by the configuration."""
    store = create_store(cfg.STORE_BACKEND, cfg.REDIS_URL)
    repository = HistoryRepository(store, default_language=Language(cfg.DEFAULT_LANGUAGE))
    planner = PlanningService(LLMProviderFactory.from_config(cfg))
    return AppState(repository, planner, max_hops=cfg.MAX_ANCESTRY_HOPS).load()


def get_state() -> AppState:
    """Return the process-wide state, creating it on first use."""
    state = current_app.extensions.get(STATE_KEY)
    if state is None:
        state = build_state()
        current_app.extensions[STATE_KEY] = state
    return state


def plan_summary(plan: PlanResponse) -> dict:
    return {'id': plan.id, 'goal': plan.goal, 'createdAt': plan.created_at}


def plan_view(state: AppState, plan: PlanResponse) -> dict:
    return {
        'plan': plan.to_wire(),
        'path': [plan_summary(p) for p in state.history.ancestry_path(plan)],
        'children': [plan_summary(p) for p in state.history.children(plan)],
        'stats': compute_stats(plan).to_dict(),
    }


def _ndjson(event: dict) -> str:
    return json.dumps(event, ensure_ascii=False) + '\n'


def _event(update) -> dict:
    return {
        'type': 'final' if update.is_final else 'partial',
        'plan': update.plan.to_wire(),
    }


def _drain(updates):
    """Run a generation to completion without anyone reading it."""
    try:
        for _ in updates:
            pass
    except StrataError as e:
        logger.warning(f"Generation finished with an error after the client left: {e}")


def stream_updates(state: AppState, updates):
    """Turn a generation into an NDJSON response.

    The first update is pulled eagerly so configuration problems come back as
    a plain error status instead of a half-written stream. A client that
    disconnects early does not cancel the generation: closing the response
    drains whatever is left, so the plan still lands in history.
    """
    try:
        first = next(updates)
    except GenerationInProgressError:
        return jsonify({'error': 'A plan is already being generated'}), 409
    except ProviderConfigurationError:
        return jsonify({'error': GENERIC_ERROR_MESSAGE}), 503
    except StrataError:
        return jsonify({'error': GENERIC_ERROR_MESSAGE}), 502

    def generate():
        yield _ndjson(_event(first))
        try:
            for update in updates:
                yield _ndjson(_event(update))
        except StrataError:
            yield _ndjson({'type': 'error', 'message': state.error or GENERIC_ERROR_MESSAGE})

    response = Response(stream_with_context(generate()), mimetype='application/x-ndjson')
    response.call_on_close(lambda: _drain(updates))
    return response


def create_app(state: AppState | None = None) -> Flask:
    app = Flask(__name__)
    app.secret_key = config.SECRET_KEY
    if state is not None:
        app.extensions[STATE_KEY] = state

    @app.route('/health')
    def health_check():
        """Health check endpoint"""
        state = current_app.extensions.get(STATE_KEY)
        store_status = 'unknown'
        if state is not None:
            store_status = 'healthy' if state.repository.store.ping() else 'unavailable'
        return jsonify({
            'status': 'healthy',
            'store': store_status,
            'timestamp': datetime.now().isoformat()
        })

    @app.route('/api/state')
    def api_state():
        state = get_state()
        return jsonify({
            'language': state.language.value,
            'error': state.error,
            'isGenerating': state.is_generating,
            'decomposingTask': state.decomposing_task,
            'activePlanId': state.active_plan.id if state.active_plan else None,
        })

    @app.route('/api/state/error', methods=['DELETE'])
    def api_dismiss_error():
        get_state().dismiss_error()
        return '', 204

    @app.route('/api/plans', methods=['GET'])
    def api_archive():
        state = get_state()
        return jsonify({'plans': [plan.to_wire() for plan in state.history.archive()]})

    @app.route('/api/plans', methods=['POST'])
    def api_generate():
        state = get_state()
        payload = request.get_json(silent=True) or {}
        goal = (payload.get('goal') or '').strip()
        if not goal:
            return jsonify({'error': 'Please enter a goal'}), 400
        if state.is_generating:
            return jsonify({'error': 'A plan is already being generated'}), 409
        return stream_updates(state, state.generate_sync(goal))

    @app.route('/api/plans', methods=['DELETE'])
    def api_clear_history():
        get_state().clear_history()
        return '', 204

    @app.route('/api/plans/active')
    def api_active_plan():
        state = get_state()
        if state.active_plan is None:
            return jsonify({'error': 'No active plan'}), 404
        return jsonify(plan_view(state, state.active_plan))

    @app.route('/api/plans/active', methods=['DELETE'])
    def api_reset_active():
        get_state().reset()
        return '', 204

    @app.route('/api/plans/<plan_id>')
    def api_plan(plan_id):
        state = get_state()
        plan = state.select(plan_id)
        if plan is None:
            return jsonify({'error': 'Plan not found'}), 404
        return jsonify(plan_view(state, plan))

    @app.route('/api/plans/<int:created_at>', methods=['DELETE'])
    def api_delete_plan(created_at):
        state = get_state()
        if not state.delete(created_at):
            return jsonify({'error': 'Plan not found'}), 404
        return '', 204

    @app.route('/api/plans/<plan_id>/breakdown', methods=['POST'])
    def api_breakdown(plan_id):
        state = get_state()
        plan = state.history.get(plan_id)
        if plan is None:
            return jsonify({'error': 'Plan not found'}), 404

        payload = request.get_json(silent=True) or {}
        title = (payload.get('title') or '').strip()
        step_id = payload.get('stepId')
        if step_id:
            step = plan.find_step(step_id)
            if step is None:
                return jsonify({'error': 'Step not found'}), 404
            if not step.is_breakable:
                return jsonify({'error': 'Step cannot be broken down'}), 400
            title = step.title
        if not title:
            return jsonify({'error': 'Provide a stepId or title'}), 400
        if state.is_generating:
            return jsonify({'error': 'A plan is already being generated'}), 409

        state.select(plan_id)
        return stream_updates(state, state.breakdown_sync(title))

    @app.route('/api/settings', methods=['GET'])
    def api_get_settings():
        return jsonify({'language': get_state().language.value})

    @app.route('/api/settings', methods=['PUT'])
    def api_put_settings():
        payload = request.get_json(silent=True) or {}
        try:
            language = Language(payload.get('language'))
        except ValueError:
            return jsonify({'error': 'Unsupported language'}), 400
        get_state().set_language(language)
        return jsonify({'language': language.value})

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    return app


app = create_app()

if __name__ == '__main__':
    app.run(debug=config.DEBUG, host=config.HOST, port=config.PORT)
