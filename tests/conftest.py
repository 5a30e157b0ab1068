from dataclasses import replace

import pytest

from process_flow_core.config import AiConfig, AzureConfig, GeminiConfig, OllamaConfig
from process_flow_core.domain_models import ChatRefinement, ProcessFlow, Step, SubProcess, Task
from process_flow_core.flow_parser import flow_to_dict


def build_sample_flow() -> ProcessFlow:
    return ProcessFlow(
        process_name="New Employee Onboarding",
        description="Onboarding de nuevos empleados",
        version="1.2",
        sub_processes=[
            SubProcess(
                id="sp_1",
                name="Pre-Arrival",
                description="Antes del primer día",
                tasks=[
                    Task(
                        id="task_1_1",
                        name="IT Provisioning",
                        description="Preparar equipo",
                        steps=[
                            Step(
                                id="step_1_1_1",
                                name="Receive ticket",
                                description="IT receives an automated ticket",
                                automation_potential="High",
                                automation_suggestion="Auto-assign from HRIS",
                                responsible_role="IT Technician",
                            ),
                            Step(
                                id="step_1_1_2",
                                name="Set up laptop",
                                description="Configure laptop from role template",
                                automation_potential="Medium",
                                responsible_role="IT Technician",
                            ),
                            Step(
                                id="step_1_1_3",
                                name="Create accounts",
                                description="Email and network accounts",
                                automation_potential="High",
                                responsible_role="IT Technician",
                            ),
                        ],
                    ),
                    Task(
                        id="task_1_2",
                        name="Facilities Preparation",
                        description="Preparar el puesto",
                        steps=[
                            Step(
                                id="step_1_2_1",
                                name="Print badge",
                                description="An access badge is printed",
                                automation_potential="Low",
                                responsible_role="Facilities",
                            ),
                        ],
                    ),
                ],
            ),
            SubProcess(
                id="sp_2",
                name="Day 1",
                description="Orientación",
                tasks=[
                    Task(
                        id="task_2_1",
                        name="Welcome and HR Paperwork",
                        description="",
                        steps=[
                            Step(
                                id="step_2_1_1",
                                name="Verify I-9",
                                description="Verification of I-9 documentation",
                                automation_potential="None",
                                responsible_role="HR Coordinator",
                            ),
                        ],
                    ),
                ],
            ),
        ],
    )


@pytest.fixture
def sample_flow() -> ProcessFlow:
    return build_sample_flow()


@pytest.fixture
def sample_flow_dict(sample_flow) -> dict:
    return flow_to_dict(sample_flow)


@pytest.fixture
def ai_config() -> AiConfig:
    return AiConfig(
        provider="gemini",
        gemini=GeminiConfig(api_key="gemini-test-key", model="gemini-2.5-flash"),
        azure=AzureConfig(
            endpoint="https://example.openai.azure.com/",
            deployment="gpt-4o",
            api_key="azure-test-key",
            api_version="2024-02-01",
        ),
        ollama=OllamaConfig(base_url="http://ollama.test:11434", model="llama3"),
        request_timeout_s=5.0,
    )


def with_new_step(flow: ProcessFlow, task_id: str, step: Step) -> ProcessFlow:
    return replace(
        flow,
        sub_processes=[
            replace(
                sp,
                tasks=[
                    replace(task, steps=task.steps + [step]) if task.id == task_id else task
                    for task in sp.tasks
                ],
            )
            for sp in flow.sub_processes
        ],
    )


class StubProvider:
    """
    Proveedor en memoria para tests del router, store y API.

    Cada operación devuelve el valor configurado o lanza la excepción
    configurada, y registra la llamada en `calls`.
    """

    def __init__(self, name="gemini", supports_file_attachments=True, flow=None, fail_with=None):
        self.name = name
        self.supports_file_attachments = supports_file_attachments
        self.flow = flow if flow is not None else build_sample_flow()
        self.fail_with = fail_with
        self.ai_response = "Done, I've updated the flow."
        self.document = "# Onboarding SOP\n"
        self.calls = []

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def generate_initial_flow(self, source, config):
        self.calls.append(("generate_initial_flow", source))
        self._maybe_fail()
        return self.flow

    async def refine_flow_with_chat(self, transcript, flow, config):
        self.calls.append(("refine_flow_with_chat", list(transcript)))
        self._maybe_fail()
        updated = replace(flow, description="Refined")
        return ChatRefinement(updated_flow=updated, ai_response=self.ai_response)

    async def enrich_step(self, flow, task_id, step_description, config):
        self.calls.append(("enrich_step", task_id, step_description))
        self._maybe_fail()
        new_step = Step(
            id="step_new_1",
            name="Enroll in MDM",
            description=step_description,
            automation_potential="High",
            responsible_role="IT Technician",
        )
        return with_new_step(flow, task_id, new_step)

    async def generate_final_document(self, flow, config):
        self.calls.append(("generate_final_document",))
        self._maybe_fail()
        return self.document


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def make_stub():
    return StubProvider
