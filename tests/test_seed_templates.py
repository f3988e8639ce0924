"""Tests for the starter template seeding script."""
from tfdash.scripts.seed_templates import STARTER_TEMPLATES, seed_templates


class TestSeedTemplates:
    def test_seeds_once(self, template_service):
        assert seed_templates(template_service) == len(STARTER_TEMPLATES)
        assert seed_templates(template_service) == 0
        assert len(template_service.list_templates()) == len(STARTER_TEMPLATES)

    def test_starter_templates_validate(self, template_service):
        seed_templates(template_service)
        for template in template_service.list_templates():
            assert template.validation_passed, template.validation_issues

    def test_starter_templates_render_with_required_values(self, template_service):
        seed_templates(template_service)
        by_name = {t.name: t for t in template_service.list_templates()}
        documents = template_service.render_template(by_name["S3 Bucket"].id, {"bucket_name": "team-logs"})
        assert 'bucket_name = "team-logs"' in documents.values_file
        assert 'variable "versioning_enabled" {' in documents.configuration
