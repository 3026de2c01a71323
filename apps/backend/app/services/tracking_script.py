"""Browser tracking snippet served to project owners."""
from __future__ import annotations

import json
from string import Template

from app.models.project import Project

# JS below avoids "$" so Template placeholders stay unambiguous
SCRIPT_TEMPLATE = Template("""<!-- Analytics Tracking Script for $title -->
<script>
(function() {
    var config = {
        apiKey: $api_key,
        endpoint: $endpoint,
        projectId: $project_id,
        projectName: $project_name,
        domain: $domain
    };

    function ProjectAnalyticsTracker(config) {
        this.config = config;
        this.endpoint = config.endpoint;
        this.sessionId = 'session-' + Date.now() + '-' + Math.random().toString(36).substr(2, 9);
        this.userId = null;
        this.init();
    }

    ProjectAnalyticsTracker.prototype.init = function() {
        var self = this;
        this.trackPageView();

        document.addEventListener('click', function(e) {
            if (e.target.tagName === 'BUTTON' || e.target.tagName === 'A') {
                self.trackClick(e.target);
            }
        });

        document.addEventListener('submit', function(e) {
            self.trackFormSubmit(e.target);
        });
    };

    ProjectAnalyticsTracker.prototype.track = function(eventData) {
        var payload = {
            session_id: this.sessionId,
            user_id: this.userId,
            ip_address: '',
            user_agent: navigator.userAgent,
            screen_width: screen.width,
            screen_height: screen.height,
            language: navigator.language,
            platform: navigator.platform
        };
        for (var key in eventData) {
            payload[key] = eventData[key];
        }

        fetch(this.endpoint, {
            method: 'POST',
            headers: {
                'Content-Type': 'application/json',
                'X-API-Key': this.config.apiKey
            },
            body: JSON.stringify(payload)
        }).catch(function(error) {
            console.warn('Analytics tracking failed:', error);
        });
    };

    ProjectAnalyticsTracker.prototype.trackPageView = function() {
        this.track({
            event_type: 'page_view',
            event_name: 'Page View',
            page_url: window.location.href,
            page_title: document.title,
            referrer: document.referrer || null
        });
    };

    ProjectAnalyticsTracker.prototype.trackClick = function(element) {
        var label = (element.textContent || '').trim() || element.className || 'Unknown Element';
        this.track({
            event_type: 'click',
            event_name: 'Click: ' + label,
            page_url: window.location.href,
            properties: {
                element_tag: element.tagName,
                element_class: element.className,
                element_id: element.id
            }
        });
    };

    ProjectAnalyticsTracker.prototype.trackFormSubmit = function(form) {
        var formName = form.getAttribute('name') || form.getAttribute('id') || 'Unknown Form';
        this.track({
            event_type: 'form_submit',
            event_name: 'Form Submit: ' + formName,
            page_url: window.location.href,
            properties: {
                form_name: formName,
                form_id: form.id
            }
        });
    };

    ProjectAnalyticsTracker.prototype.trackCustomEvent = function(eventName, eventType, properties) {
        this.track({
            event_type: eventType || 'custom',
            event_name: eventName,
            page_url: window.location.href,
            properties: properties || {}
        });
    };

    ProjectAnalyticsTracker.prototype.setUserId = function(userId) {
        this.userId = userId;
    };

    window.analytics = new ProjectAnalyticsTracker(config);

    window.trackEvent = function(eventName, eventType, properties) {
        window.analytics.trackCustomEvent(eventName, eventType, properties);
    };

    window.setUserId = function(userId) {
        window.analytics.setUserId(userId);
    };
})();
</script>""")


def _js(value: str) -> str:
    return json.dumps(value)


def render_tracking_script(project: Project, base_url: str) -> str:
    endpoint = base_url.rstrip("/") + "/api/v1/track"
    return SCRIPT_TEMPLATE.substitute(
        title=project.name.replace("--", "- -"),
        api_key=_js(project.api_key),
        endpoint=_js(endpoint),
        project_id=_js(project.id),
        project_name=_js(project.name),
        domain=_js(project.domain),
    )
