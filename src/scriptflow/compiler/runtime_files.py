"""Static helper files shipped with every compiled project.

These files never depend on the graph, so they are byte-identical across
compilations. ``main.gs`` calls into them.
"""

STORAGE_GS = """\
/**
 * Execution state, persistent state and de-duplication helpers.
 */

const HALT_MARKER_ = '__scriptflow_halt__';

function newExecutionState_(event) {
  return {
    event: event || {},
    outputs: {},
    startedAt: new Date().toISOString(),
  };
}

function setOutput_(state, nodeId, value) {
  state.outputs[nodeId] = value === undefined ? null : value;
}

function getOutput_(state, nodeId, path) {
  if (!Object.prototype.hasOwnProperty.call(state.outputs, nodeId)) {
    throw new Error('Output of step "' + nodeId + '" is not available yet');
  }
  const value = state.outputs[nodeId];
  return path ? getNestedValue_(value, path) : value;
}

function halt_(reason) {
  const marker = {};
  marker[HALT_MARKER_] = true;
  marker.reason = reason;
  return marker;
}

function isHalted_(state, nodeId) {
  const value = state.outputs[nodeId];
  return value !== null && typeof value === 'object' && value[HALT_MARKER_] === true;
}

function getState_(key, fallback) {
  const raw = PropertiesService.getScriptProperties().getProperty('state_' + key);
  if (raw === null) {
    return fallback;
  }
  try {
    return JSON.parse(raw);
  } catch (e) {
    return fallback;
  }
}

function setState_(key, value) {
  PropertiesService.getScriptProperties().setProperty('state_' + key, JSON.stringify(value));
}

function getLastProcessedTime_(nodeId) {
  const stored = getState_('last_time_' + nodeId, null);
  return stored ? new Date(stored) : new Date(Date.now() - 24 * 60 * 60 * 1000);
}

function setLastProcessedTime_(nodeId, date) {
  setState_('last_time_' + nodeId, date.toISOString());
}

function isProcessed_(nodeId, itemId) {
  return CacheService.getScriptCache().get('seen_' + nodeId + '_' + itemId) !== null
    || getState_('seen_' + nodeId + '_' + itemId, false) === true;
}

function markProcessed_(nodeId, itemId) {
  // Cache entries expire after six hours; properties keep the long tail
  CacheService.getScriptCache().put('seen_' + nodeId + '_' + itemId, '1', 21600);
  setState_('seen_' + nodeId + '_' + itemId, true);
}
"""

HTTP_GS = """\
/**
 * Outbound HTTP and value helpers.
 */

const HTTP_MAX_ATTEMPTS_ = 3;

function fetchRaw_(method, url, headers, body) {
  const options = {
    method: String(method || 'GET').toLowerCase(),
    headers: headers || {},
    muteHttpExceptions: true,
  };
  if (body !== undefined && body !== null) {
    if (typeof body === 'string') {
      options.payload = body;
    } else {
      options.payload = JSON.stringify(body);
      options.contentType = 'application/json';
    }
  }

  let response = null;
  for (let attempt = 1; attempt <= HTTP_MAX_ATTEMPTS_; attempt++) {
    response = UrlFetchApp.fetch(url, options);
    const code = response.getResponseCode();
    if (code !== 429 && code < 500) {
      break;
    }
    if (attempt < HTTP_MAX_ATTEMPTS_) {
      Utilities.sleep(Math.pow(2, attempt) * 500);
    }
  }

  const status = response.getResponseCode();
  if (status >= 400) {
    throw new Error(method + ' ' + url + ' failed with HTTP ' + status + ': ' + response.getContentText());
  }
  return response;
}

function fetchJson_(method, url, headers, body) {
  const response = fetchRaw_(method, url, headers, body);
  const text = response.getContentText();
  let data = text;
  try {
    data = text ? JSON.parse(text) : null;
  } catch (e) {
    // Non-JSON responses are returned as text
  }
  return { status: response.getResponseCode(), data: data };
}

function getNestedValue_(value, path) {
  if (!path) {
    return value;
  }
  const parts = String(path).replace(/\\[(\\d+)\\]/g, '.$1').split('.');
  let current = value;
  for (let i = 0; i < parts.length; i++) {
    if (parts[i] === '') {
      continue;
    }
    if (current === null || current === undefined) {
      return null;
    }
    current = current[parts[i]];
  }
  return current === undefined ? null : current;
}

function toText_(value) {
  if (value === null || value === undefined) {
    return '';
  }
  if (typeof value === 'object') {
    return JSON.stringify(value);
  }
  return String(value);
}

function extractSpreadsheetId_(idOrUrl) {
  const match = String(idOrUrl).match(/\\/d\\/([a-zA-Z0-9-_]+)/);
  return match ? match[1] : String(idOrUrl);
}
"""

OAUTH_GS = """\
/**
 * Credentials: named secrets and OAuth2 services.
 *
 * Secrets are read from Script Properties (Project Settings > Script
 * properties). OAuth2 services need the OAuth2 library in appsscript.json.
 */

function getSecret_(name) {
  const value = PropertiesService.getScriptProperties().getProperty(name);
  if (value === null || value === '') {
    throw new Error('Missing secret "' + name + '": add it under Project Settings > Script properties');
  }
  return value;
}

function getOAuthService_(name) {
  if (typeof OAuth2 === 'undefined') {
    throw new Error('OAuth2 library is not installed for service "' + name + '"');
  }
  return OAuth2.createService(name)
    .setAuthorizationBaseUrl(getSecret_(name + '_AUTH_URL'))
    .setTokenUrl(getSecret_(name + '_TOKEN_URL'))
    .setClientId(getSecret_(name + '_CLIENT_ID'))
    .setClientSecret(getSecret_(name + '_CLIENT_SECRET'))
    .setCallbackFunction('authCallback_')
    .setPropertyStore(PropertiesService.getUserProperties());
}

function getAuthorizationUrl_(name) {
  return getOAuthService_(name).getAuthorizationUrl();
}

function authCallback_(request) {
  const service = getOAuthService_(request.parameter.serviceName);
  const authorized = service.handleCallback(request);
  return HtmlService.createHtmlOutput(authorized ? 'Authorized. You can close this tab.' : 'Access denied.');
}
"""
